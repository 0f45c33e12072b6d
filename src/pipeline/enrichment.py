from __future__ import annotations

from typing import Optional, Protocol
from urllib.parse import urlparse

from src.errors import FetchFailed, NoWebsite
from src.schemas import BusinessRecord, EnrichmentResult

from .contact_miner import ContactMiner
from .store import RecordStore


NO_DATA_MARKER = "-"


class TextFetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


def has_usable_website(record: BusinessRecord) -> bool:
    website = (record.website or "").strip()
    if not website or website == NO_DATA_MARKER:
        return False
    parsed = urlparse(website)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class EnrichmentCoordinator:
    """Fetches a record's website once and mines it for contact details.

    No retries: one fetch per call. FetchFailed and NoWebsite propagate so the
    caller decides between surfacing the error and skipping the record.
    """

    def __init__(self, fetcher: TextFetcher, miner: Optional[ContactMiner] = None) -> None:
        self.fetcher = fetcher
        self.miner = miner or ContactMiner()

    async def enrich(self, record: BusinessRecord) -> EnrichmentResult:
        if not has_usable_website(record):
            raise NoWebsite(record.website)
        url = record.website.strip()
        try:
            html = await self.fetcher.fetch(url)
        except FetchFailed:
            raise
        except Exception as e:
            raise FetchFailed(url, e) from e
        return self.miner.mine(html, url)

    async def enrich_and_merge(self, store: RecordStore, record: BusinessRecord) -> Optional[BusinessRecord]:
        """Enrich ``record`` and merge the result into its stored entry.

        Returns the updated stored record, or None when the record was removed
        from the store while the fetch was in flight.
        """
        result = await self.enrich(record)
        return store.merge_enrichment(record, result)
