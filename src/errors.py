"""Custom exceptions for the maps business extractor."""

from __future__ import annotations

from typing import Optional


class ExtractorError(Exception):
    """Base exception for all extractor errors."""
    pass


class ConfigurationError(ExtractorError):
    """Raised when the YAML configuration is missing, invalid or mistyped."""
    pass


class NoWebsite(ExtractorError):
    """Raised when a record has no usable website to enrich from."""

    def __init__(self, website: Optional[str] = None) -> None:
        shown = website if website else "<empty>"
        super().__init__(f"No website to enrich from ({shown})")
        self.website = website or ""


class FetchFailed(ExtractorError):
    """Raised when a website fetch fails (transport error or non-2xx status)."""

    def __init__(self, url: str, cause: object) -> None:
        super().__init__(f"Fetch failed for {url}: {cause}")
        self.url = url
        self.cause = cause


class ChannelUnavailable(ExtractorError):
    """Raised when the page context did not answer a request."""

    def __init__(self, action: str, cause: object = None) -> None:
        msg = f"Page channel unavailable for '{action}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        self.action = action
        self.cause = cause
