import pytest
from unittest.mock import AsyncMock, Mock

from src.db.kv_store import MemoryKeyValueStore
from src.errors import FetchFailed, NoWebsite
from src.pipeline.enrichment import EnrichmentCoordinator, has_usable_website
from src.pipeline.store import RecordStore
from src.schemas import BusinessRecord


SITE_HTML = """
<html><body>
  <a href="mailto:hello@bluedoor.example">Email</a>
  <a href="tel:+1 (555) 123-4567">Call</a>
  <a href="https://www.instagram.com/bluedoor">Instagram</a>
</body></html>
"""


def _fetcher(html: str = SITE_HTML) -> Mock:
    fetcher = Mock()
    fetcher.fetch = AsyncMock(return_value=html)
    return fetcher


@pytest.mark.parametrize("website,usable", [
    ("https://bluedoor.example", True),
    ("http://bluedoor.example/menu", True),
    ("", False),
    ("-", False),
    ("  ", False),
    ("ftp://bluedoor.example", False),
    ("bluedoor.example", False),
])
def test_has_usable_website(website, usable):
    assert has_usable_website(BusinessRecord(name="Blue Door", website=website)) is usable


@pytest.mark.asyncio
async def test_enrich_mines_fetched_page():
    fetcher = _fetcher()
    coordinator = EnrichmentCoordinator(fetcher)
    result = await coordinator.enrich(BusinessRecord(name="Blue Door", website="https://bluedoor.example"))

    fetcher.fetch.assert_awaited_once_with("https://bluedoor.example")
    assert result.emails == ["hello@bluedoor.example"]
    assert result.phones == ["5551234567"]
    assert result.socials["instagram"] == ["https://www.instagram.com/bluedoor"]


@pytest.mark.asyncio
@pytest.mark.parametrize("website", ["", "-"])
async def test_enrich_without_website_raises_no_website(website):
    fetcher = _fetcher()
    coordinator = EnrichmentCoordinator(fetcher)
    with pytest.raises(NoWebsite):
        await coordinator.enrich(BusinessRecord(name="Blue Door", website=website))
    fetcher.fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_failure_propagates():
    fetcher = Mock()
    fetcher.fetch = AsyncMock(side_effect=FetchFailed("https://bluedoor.example", "HTTP 500"))
    coordinator = EnrichmentCoordinator(fetcher)
    with pytest.raises(FetchFailed, match="HTTP 500"):
        await coordinator.enrich(BusinessRecord(name="Blue Door", website="https://bluedoor.example"))


@pytest.mark.asyncio
async def test_unexpected_fetcher_error_wrapped():
    fetcher = Mock()
    fetcher.fetch = AsyncMock(side_effect=TimeoutError("read timeout"))
    coordinator = EnrichmentCoordinator(fetcher)
    with pytest.raises(FetchFailed) as exc:
        await coordinator.enrich(BusinessRecord(name="Blue Door", website="https://bluedoor.example"))
    assert isinstance(exc.value.cause, TimeoutError)


@pytest.mark.asyncio
async def test_enrich_and_merge_updates_stored_record():
    kv = MemoryKeyValueStore()
    store = RecordStore(kv)
    rec = BusinessRecord(name="Blue Door", address="12 Main St", website="https://bluedoor.example")
    store.add(rec)

    updated = await EnrichmentCoordinator(_fetcher()).enrich_and_merge(store, rec)

    assert updated is rec
    assert store.get(0).emails == "hello@bluedoor.example"
    assert store.get(0).web_phones == "5551234567"
    assert store.get(0).instagram == "https://www.instagram.com/bluedoor"


@pytest.mark.asyncio
async def test_enrich_and_merge_after_delete_returns_none():
    store = RecordStore(MemoryKeyValueStore())
    rec = BusinessRecord(name="Blue Door", address="12 Main St", website="https://bluedoor.example")
    store.add(rec)
    store.remove_at(0)

    assert await EnrichmentCoordinator(_fetcher()).enrich_and_merge(store, rec) is None
    assert len(store) == 0
