"""
Auto-Sequence Controller - unattended extraction over a results list

State machine: Idle -> Running -> AwaitingProfileLoad -> Running ... -> Stopped.

Per iteration (strictly sequential): focus result at cursor -> advance and
persist cursor -> poll until the profile is loaded or attempts run out ->
settle -> extract -> add -> enrich -> merge -> inter-item delay.

Guarantees:
- Cursor advances exactly once per focused item, whatever happens after,
  so a bad item can never be retried forever
- Cursor and active flag are persisted after every advance (restart resumes)
- Stop is cooperative: checked between steps and inside the poll loop; a
  result that arrives after stop was requested is discarded
- Page-channel errors abort the run; there are no retries
"""

from __future__ import annotations

import asyncio
import inspect
import sys
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Optional, Union

from src.config import TimingConfig
from src.db.kv_store import AUTO_SEQUENCE_KEY, KeyValueStore
from src.errors import ChannelUnavailable, FetchFailed
from src.ops_logger import OpsLogger
from src.schemas import AutoSequenceState, PollOutcome, SequencePhase

from .enrichment import EnrichmentCoordinator, has_usable_website
from .fetchers.playwright import PageChannel
from .store import RecordStore


ConfirmRestart = Callable[[], Union[bool, Awaitable[bool]]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class SequenceReport:
    processed: int = 0            # items focused (cursor advances)
    skipped: int = 0              # profile never loaded
    extracted: int = 0            # accepted into the store
    duplicates: int = 0
    incomplete: int = 0           # extraction yielded no name
    enrichment_attempts: int = 0
    enrichment_failures: int = 0
    final_cursor: int = 0
    stop_reason: Optional[str] = None  # end_of_list | stopped | channel_error | enrichment_error
    error: Optional[str] = None


class AutoSequenceController:
    """Drives extraction (and enrichment) over successive result items."""

    def __init__(
        self,
        channel: PageChannel,
        store: RecordStore,
        kv: KeyValueStore,
        *,
        coordinator: Optional[EnrichmentCoordinator] = None,
        confirm_restart: Optional[ConfirmRestart] = None,
        timing: Optional[TimingConfig] = None,
        sleep: Sleep = asyncio.sleep,
        ops_logger: Optional[OpsLogger] = None,
        stop_on_enrichment_error: bool = False,
    ) -> None:
        self.channel = channel
        self.store = store
        self.kv = kv
        self.coordinator = coordinator
        self.confirm_restart = confirm_restart
        self.timing = timing or TimingConfig()
        self._sleep = sleep
        self.ops_logger = ops_logger
        self.stop_on_enrichment_error = bool(stop_on_enrichment_error)
        self.phase = SequencePhase.IDLE
        self.state = self.load_state()
        self._stop_requested = False

    # -------------------------
    # Persisted state
    # -------------------------
    def load_state(self) -> AutoSequenceState:
        raw = self.kv.get([AUTO_SEQUENCE_KEY]).get(AUTO_SEQUENCE_KEY)
        if isinstance(raw, dict):
            try:
                return AutoSequenceState.model_validate(raw)
            except ValueError:
                pass
        return AutoSequenceState()

    def _persist_state(self) -> None:
        self.kv.set({AUTO_SEQUENCE_KEY: self.state.to_storage()})

    def reset(self) -> None:
        """Forget the resume position."""
        self.state = AutoSequenceState(cursor_index=0, is_active=False)
        self._persist_state()

    # -------------------------
    # Commands
    # -------------------------
    @property
    def is_running(self) -> bool:
        return self.phase in (SequencePhase.RUNNING, SequencePhase.AWAITING_PROFILE_LOAD)

    def stop(self) -> None:
        """Request a cooperative stop; takes effect at the next check point."""
        self._stop_requested = True

    async def start(self) -> SequenceReport:
        if self.is_running:
            raise RuntimeError("auto-sequence is already running")
        self._stop_requested = False
        self.state = self.load_state()
        if self.state.cursor_index > 0 and await self._ask_restart():
            self.state.cursor_index = 0
        self.state.is_active = True
        self._persist_state()

        report = SequenceReport()
        self.phase = SequencePhase.RUNNING
        print(f"▶️  Auto-sequence started at index {self.state.cursor_index}")
        try:
            report.stop_reason = await self._run(report)
        except ChannelUnavailable as e:
            report.stop_reason = "channel_error"
            report.error = str(e)
            print(f"⛔ Auto-sequence aborted: {e}", file=sys.stderr)
        finally:
            self.phase = SequencePhase.STOPPED
            self.state.is_active = False
            self._persist_state()
            report.final_cursor = self.state.cursor_index
            self._log("summary", **asdict(report))
        print(f"⏹️  Auto-sequence stopped ({report.stop_reason}) at index {report.final_cursor}")
        return report

    async def _ask_restart(self) -> bool:
        if self.confirm_restart is None:
            return False
        answer = self.confirm_restart()
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    # -------------------------
    # Loop
    # -------------------------
    async def _run(self, report: SequenceReport) -> str:
        while True:
            if self._stop_requested:
                return "stopped"
            self.phase = SequencePhase.RUNNING
            index = self.state.cursor_index
            if not await self.channel.click_next(index):
                return "end_of_list"
            self.state.cursor_index = index + 1
            self._persist_state()
            report.processed += 1

            self.phase = SequencePhase.AWAITING_PROFILE_LOAD
            outcome = await self.poll_profile_loaded()
            if self._stop_requested:
                return "stopped"
            if outcome is PollOutcome.READY:
                await self._sleep(self.timing.settle_delay_s)
                if self._stop_requested:
                    return "stopped"
                reason = await self._process_item(index, report)
                if reason:
                    return reason
            else:
                report.skipped += 1
                print(f"  ⏭️  Profile at index {index} did not load; skipped")
                self._log("item", index=index, outcome="timeout")

            if self._stop_requested:
                return "stopped"
            await self._sleep(self.timing.inter_item_delay_s)

    async def poll_profile_loaded(self) -> PollOutcome:
        """Bounded readiness poll: READY, EXHAUSTED, or PENDING when stopped early."""
        for _ in range(self.timing.poll_attempts):
            if self._stop_requested:
                return PollOutcome.PENDING
            await self._sleep(self.timing.poll_interval_s)
            if self._stop_requested:
                return PollOutcome.PENDING
            if await self.channel.check_profile_loaded():
                return PollOutcome.READY
        return PollOutcome.EXHAUSTED

    async def _process_item(self, index: int, report: SequenceReport) -> Optional[str]:
        record = await self.channel.extract_data()
        if self._stop_requested:
            return "stopped"
        added = self.store.add(record)
        if not added.accepted:
            if added.reason == "duplicate":
                report.duplicates += 1
            else:
                report.incomplete += 1
            print(f"  ℹ️  Index {index}: not added ({added.reason})")
            self._log("item", index=index, outcome=added.reason, name=record.name)
            return None
        report.extracted += 1
        print(f"  ✅ Index {index}: {record.name}")

        if self.coordinator is None or not has_usable_website(record):
            self._log("item", index=index, outcome="extracted", name=record.name, enriched=False)
            return None
        report.enrichment_attempts += 1
        try:
            result = await self.coordinator.enrich(record)
        except FetchFailed as e:
            report.enrichment_failures += 1
            print(f"  ⚠️  Enrichment failed for {record.name}: {e}")
            self._log("item", index=index, outcome="enrichment_failed", name=record.name, error=str(e))
            if self.stop_on_enrichment_error:
                report.error = str(e)
                return "enrichment_error"
            return None
        if self._stop_requested:
            return "stopped"
        self.store.merge_enrichment(record, result)
        self._log(
            "item", index=index, outcome="extracted", name=record.name, enriched=True,
            emails=len(result.emails), phones=len(result.phones),
        )
        return None

    def _log(self, kind: str, **fields) -> None:
        if self.ops_logger is not None:
            self.ops_logger.event(kind, **fields)
