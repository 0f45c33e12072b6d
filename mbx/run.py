"""
Maps Business Extractor - CLI Runner

Usage:
  python -m mbx.run extract --url "https://www.google.com/maps/place/..." --enrich
  python -m mbx.run auto --url "https://www.google.com/maps/search/dentists+austin" --resume
  python -m mbx.run enrich --index 3
  python -m mbx.run list
  python -m mbx.run delete --index 0
  python -m mbx.run clear --yes
  python -m mbx.run export --format csv --out ./out
  python -m mbx.run export --format xlsx

Common options (before the command):
  --config/-c  YAML config file
  --db         SQLite store (default from config, ./mbx.sqlite)
  --ops-log    JSONL operations log
  --ops-stdout Mirror ops JSON to stdout

Exit codes:
  0 - success
  1 - config error (file missing or invalid YAML)
  2 - input error (bad index, bad URL, empty selection)
  3 - processing error (runtime failures)
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from src.config import Settings, load_settings
from src.db.kv_store import SQLiteKeyValueStore
from src.errors import ChannelUnavailable, ConfigurationError, FetchFailed, NoWebsite
from src.ops_logger import OpsLogger
from src.pipeline.auto_sequence import AutoSequenceController
from src.pipeline.contact_miner import ContactMiner
from src.pipeline.enrichment import EnrichmentCoordinator, has_usable_website
from src.pipeline.export import RecordExporter, to_tsv
from src.pipeline.fetchers.playwright import PlaywrightPageChannel
from src.pipeline.fetchers.static import WebsiteFetcher
from src.pipeline.field_extractor import FieldExtractor
from src.pipeline.store import RecordStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mbx.run", description="Google Maps business extractor")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--db", default=None, help="Path to SQLite store (default: storage.db_path)")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    sub = parser.add_subparsers(dest="command", required=True)

    p_extract = sub.add_parser("extract", help="Extract the business shown on a place page")
    p_extract.add_argument("--url", required=True, help="Google Maps place URL")
    p_extract.add_argument("--enrich", action="store_true", help="Also mine the business website")
    p_extract.add_argument("--headed", action="store_true", help="Show the browser window")

    p_auto = sub.add_parser("auto", help="Extract every result of a search list")
    p_auto.add_argument("--url", required=True, help="Google Maps search URL")
    mode = p_auto.add_mutually_exclusive_group()
    mode.add_argument("--restart", action="store_true", help="Start from the first result")
    mode.add_argument("--resume", action="store_true", help="Continue from the saved position")
    p_auto.add_argument("--no-enrich", action="store_true", help="Skip website enrichment")
    p_auto.add_argument("--headed", action="store_true", help="Show the browser window")

    p_enrich = sub.add_parser("enrich", help="Enrich one stored record from its website")
    p_enrich.add_argument("--index", type=int, default=None, help="Storage index (default: most recent)")

    sub.add_parser("list", help="Print stored records")

    p_delete = sub.add_parser("delete", help="Delete a stored record")
    p_delete.add_argument("--index", type=int, required=True, help="Storage index")

    p_clear = sub.add_parser("clear", help="Delete all stored records")
    p_clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    p_export = sub.add_parser("export", help="Export stored records")
    p_export.add_argument("--format", choices=["tsv", "csv", "json", "xlsx"], default="tsv")
    p_export.add_argument("--out", "-o", default="out", help="Output directory for csv/json/xlsx")
    return parser


def _ask_yes_no(question: str) -> bool:
    if not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{question} [y/N] ").strip().lower()
    except EOFError:
        return False
    return answer in ("y", "yes")


def _make_ops_logger(args: argparse.Namespace, settings: Settings) -> Optional[OpsLogger]:
    path = args.ops_log or settings.ops.log_path
    also_stdout = bool(args.ops_stdout or settings.ops.stdout)
    if not path and not also_stdout:
        return None
    return OpsLogger(Path(path) if path else None, also_stdout=also_stdout)


def _make_channel(args: argparse.Namespace, settings: Settings) -> PlaywrightPageChannel:
    return PlaywrightPageChannel(
        extractor=FieldExtractor(settings.extraction.phone_policy),
        headless=settings.browser.headless and not getattr(args, "headed", False),
        timeout_ms=settings.browser.timeout_ms,
        scroll_wait_ms=settings.browser.scroll_wait_ms,
        locale=settings.browser.locale,
    )


def _make_coordinator(settings: Settings) -> EnrichmentCoordinator:
    fetcher = WebsiteFetcher(timeout_s=settings.enrichment.timeout_s)
    return EnrichmentCoordinator(fetcher, ContactMiner(settings.extraction.phone_policy))


def _print_enrichment(record) -> None:
    print(f"  📧 Emails: {record.emails or '-'}")
    print(f"  ☎️  Web phones: {record.web_phones or '-'}")
    for platform in ("facebook", "instagram", "linkedin", "twitter", "whatsapp", "telegram"):
        value = getattr(record, platform)
        if value:
            print(f"  🔗 {platform}: {value}")


async def _enrich_one(store: RecordStore, record, settings: Settings) -> int:
    if not has_usable_website(record):
        print("No website found for this business.", file=sys.stderr)
        return 3
    coordinator = _make_coordinator(settings)
    try:
        updated = await coordinator.enrich_and_merge(store, record)
    except NoWebsite:
        print("No website found for this business.", file=sys.stderr)
        return 3
    except FetchFailed as e:
        print(f"Enrichment failed: {e}", file=sys.stderr)
        return 3
    finally:
        await coordinator.fetcher.aclose()
    if updated is None:
        return 3
    print(f"✨ Enrichment complete for {updated.name}")
    _print_enrichment(updated)
    return 0


async def cmd_extract(args: argparse.Namespace, settings: Settings, store: RecordStore) -> int:
    if "google." not in args.url or "/maps" not in args.url:
        print("Input error: please pass a Google Maps business profile URL.", file=sys.stderr)
        return 2
    channel = _make_channel(args, settings)
    try:
        await channel.open(args.url)
        record = await channel.extract_data()
    except ChannelUnavailable as e:
        print(f"Extraction error: {e}", file=sys.stderr)
        return 3
    finally:
        await channel.close()

    added = store.add(record)
    if not added.accepted:
        if added.reason == "duplicate":
            print("This business is already in your list.")
            return 0
        print("Could not extract data. Make sure you are viewing a business profile.", file=sys.stderr)
        return 3
    print(f"✅ Extracted: {record.name} (#{added.index})")
    missing = record.missing_fields()
    if missing:
        print(f"  ℹ️  Empty fields: {', '.join(missing)}")
    if args.enrich:
        return await _enrich_one(store, record, settings)
    return 0


async def cmd_auto(args: argparse.Namespace, settings: Settings, store: RecordStore, kv) -> int:
    channel = _make_channel(args, settings)
    coordinator = None
    if settings.enrichment.enabled and not args.no_enrich:
        coordinator = _make_coordinator(settings)

    if args.restart:
        confirm = lambda: True  # noqa: E731
    elif args.resume:
        confirm = lambda: False  # noqa: E731
    else:
        confirm = lambda: _ask_yes_no("A previous run stopped midway. Restart from the first result?")  # noqa: E731

    controller = AutoSequenceController(
        channel,
        store,
        kv,
        coordinator=coordinator,
        confirm_restart=confirm,
        timing=settings.timing,
        ops_logger=_make_ops_logger(args, settings),
        stop_on_enrichment_error=settings.enrichment.stop_on_error,
    )
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.stop)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        await channel.open(args.url)
        report = await controller.start()
    except ChannelUnavailable as e:
        print(f"Browser error: {e}", file=sys.stderr)
        return 3
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await channel.close()
        if coordinator is not None:
            await coordinator.fetcher.aclose()

    print(f"   Processed: {report.processed} | extracted: {report.extracted} | "
          f"duplicates: {report.duplicates} | skipped: {report.skipped}")
    print(f"   Enrichment: {report.enrichment_attempts} attempted, {report.enrichment_failures} failed")
    if report.stop_reason in ("channel_error", "enrichment_error"):
        return 3
    return 0


def cmd_enrich(args: argparse.Namespace, settings: Settings, store: RecordStore) -> int:
    record = store.latest() if args.index is None else store.get(args.index)
    if record is None:
        print("Input error: no such record.", file=sys.stderr)
        return 2
    return asyncio.run(_enrich_one(store, record, settings))


def cmd_list(store: RecordStore) -> int:
    records = store.all()
    print(f"📋 {len(records)} record(s)")
    for i, rec in enumerate(records):
        print(f"  [{i}] {rec.name} | {rec.phone or '-'} | {rec.website or '-'}")
    return 0


def cmd_delete(args: argparse.Namespace, store: RecordStore) -> int:
    removed = store.remove_at(args.index)
    if removed is None:
        print(f"Input error: no record at index {args.index}.", file=sys.stderr)
        return 2
    print(f"🗑️  Deleted: {removed.name}")
    return 0


def cmd_clear(args: argparse.Namespace, store: RecordStore) -> int:
    if not args.yes and not _ask_yes_no("Are you sure you want to clear all extracted data?"):
        print("Nothing cleared.")
        return 0
    count = store.clear()
    print(f"🧹 Cleared {count} record(s)")
    return 0


def cmd_export(args: argparse.Namespace, store: RecordStore) -> int:
    records = list(store.all())
    if not records:
        print("No records to export.", file=sys.stderr)
        return 2
    if args.format == "tsv":
        sys.stdout.write(to_tsv(records))
        return 0
    try:
        exporter = RecordExporter(output_dir=Path(args.out))
        if args.format == "csv":
            exporter.to_csv(records)
        elif args.format == "xlsx":
            exporter.to_xlsx(records)
        else:
            exporter.to_json(records)
    except OSError as e:
        print(f"Export error: {e}", file=sys.stderr)
        return 3
    return 0


def main(argv: list[str] | None = None) -> int:
    if sys.version_info < (3, 11):
        cur = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        print(f"Python 3.11+ required. Current: {cur}.", file=sys.stderr)
        return 1

    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    db_path = args.db or settings.storage.db_path
    try:
        kv = SQLiteKeyValueStore(db_path)
    except Exception as e:
        print(f"Storage error: cannot open {db_path}: {e}", file=sys.stderr)
        return 3
    try:
        store = RecordStore.load(kv)
        if args.command == "extract":
            return asyncio.run(cmd_extract(args, settings, store))
        if args.command == "auto":
            return asyncio.run(cmd_auto(args, settings, store, kv))
        if args.command == "enrich":
            return cmd_enrich(args, settings, store)
        if args.command == "list":
            return cmd_list(store)
        if args.command == "delete":
            return cmd_delete(args, store)
        if args.command == "clear":
            return cmd_clear(args, store)
        if args.command == "export":
            return cmd_export(args, store)
        return 2
    finally:
        kv.close()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
