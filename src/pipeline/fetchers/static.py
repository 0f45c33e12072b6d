from __future__ import annotations

import typing as t
from dataclasses import dataclass

import httpx

from src.errors import FetchFailed


DEFAULT_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    mime: str | None
    text: str


class WebsiteFetcher:
    """Static website fetcher used for enrichment.

    - Uses httpx (async) for network IO
    - Does NOT execute JavaScript
    - Single attempt: transport errors and non-2xx statuses raise FetchFailed
    """

    def __init__(
        self,
        *,
        timeout_s: float = 12.0,
        user_agent: str = DEFAULT_UA,
        client: t.Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "WebsiteFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def fetch_result(self, url: str) -> FetchResult:
        try:
            resp = await self._client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise FetchFailed(url, e) from e
        if not resp.is_success:
            raise FetchFailed(url, f"HTTP {resp.status_code}")
        mime = resp.headers.get("Content-Type")
        mime_main = None
        if mime:
            mime_main = mime.split(";")[0].strip().lower()
        return FetchResult(
            url=str(resp.request.url),
            status_code=resp.status_code,
            mime=mime_main,
            text=resp.text,
        )

    async def fetch(self, url: str) -> str:
        """Return the response body text; raises FetchFailed."""
        result = await self.fetch_result(url)
        return result.text
