"""
Maps Business Extractor - Pydantic Data Schemas

Core data models for extracted business records, website enrichment results
and the persisted auto-sequence cursor.

Field names are snake_case in Python; persistence and JSON exports use the
camelCase aliases (``reviewCount``, ``placeId``, ``extractedAt`` ...).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Tuple
import re

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)


SOCIAL_PLATFORMS: Tuple[str, ...] = (
    "facebook", "instagram", "linkedin", "twitter", "whatsapp", "telegram",
)

MAX_EMAILS = 10
MAX_PHONES = 5
MIN_PHONE_DIGITS = 7

_NEWLINES_RE = re.compile(r"[\r\n]+")


def collapse_newlines(value: str) -> str:
    """Collapse embedded line breaks to a single space and trim."""
    return _NEWLINES_RE.sub(" ", value).strip()


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


class PhonePolicy(str, Enum):
    """How long digit strings are shortened after normalisation."""
    LOCAL10 = "local10"    # keep the last 10 digits when longer (drops country code)
    KEEP_ALL = "keep_all"  # keep every digit


class SequencePhase(str, Enum):
    """Phases of the auto-sequence state machine."""
    IDLE = "Idle"
    RUNNING = "Running"
    AWAITING_PROFILE_LOAD = "AwaitingProfileLoad"
    STOPPED = "Stopped"


class PollOutcome(str, Enum):
    """Tri-state result of a readiness poll."""
    READY = "ready"
    PENDING = "pending"
    EXHAUSTED = "exhausted"


class EnrichmentResult(BaseModel):
    """
    Contact details mined from a business website.

    Transient: merged into a BusinessRecord, never persisted on its own.
    """
    emails: List[str] = Field(
        default_factory=list,
        description="Email addresses, insertion order, at most 10"
    )

    phones: List[str] = Field(
        default_factory=list,
        description="Digit-only phone numbers (>= 7 digits), at most 5"
    )

    socials: Dict[str, List[str]] = Field(
        default_factory=dict,
        validate_default=True,
        description="Platform name -> absolute profile URLs"
    )

    @field_validator('emails')
    @classmethod
    def validate_emails(cls, v):
        return _dedupe(v)[:MAX_EMAILS]

    @field_validator('phones')
    @classmethod
    def validate_phones(cls, v):
        digits = [re.sub(r"\D", "", p) for p in v]
        return _dedupe([p for p in digits if len(p) >= MIN_PHONE_DIGITS])[:MAX_PHONES]

    @field_validator('socials')
    @classmethod
    def validate_socials(cls, v):
        out = {platform: [] for platform in SOCIAL_PLATFORMS}
        for platform, links in (v or {}).items():
            out[platform] = _dedupe(list(links))
        return out

    @property
    def is_empty(self) -> bool:
        return not (self.emails or self.phones or any(self.socials.values()))


class BusinessRecord(BaseModel):
    """
    One extracted business.

    All string fields are newline-free: downstream export formats are
    newline-delimited, so line breaks are collapsed on every assignment.
    """
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    name: str = Field(default="", description="Business name; empty means extraction failed")
    category: str = ""
    address: str = ""
    phone: str = Field(default="", description="Normalised digit string")
    website: str = Field(default="", description="Absolute URL or empty")
    rating: str = Field(default="", description="Decimal string with '.' separator")
    review_count: str = Field(default="", alias="reviewCount")
    hours: str = ""
    place_id: str = Field(default="", alias="placeId")
    source_url: str = Field(default="", alias="sourceUrl")
    extracted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("extractedAt", "extracted_at", "timestamp"),
        serialization_alias="extractedAt",
    )

    # Enrichment extension (comma-joined strings)
    emails: str = ""
    web_phones: str = Field(default="", alias="webPhones")
    facebook: str = ""
    instagram: str = ""
    linkedin: str = ""
    twitter: str = ""
    whatsapp: str = ""
    telegram: str = ""

    @field_validator('*', mode='before')
    @classmethod
    def empty_for_none(cls, v, info: ValidationInfo):
        if v is None and info.field_name != 'extracted_at':
            return ""
        return v

    @field_validator('*')
    @classmethod
    def strip_newlines(cls, v):
        if isinstance(v, str):
            return collapse_newlines(v)
        return v

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.name, self.address)

    def missing_fields(self) -> List[str]:
        """Core fields left empty by extraction (degraded, not an error)."""
        core = ("name", "category", "address", "phone", "website",
                "rating", "review_count", "hours", "place_id")
        out = []
        for field_name in core:
            if not getattr(self, field_name):
                alias = type(self).model_fields[field_name].alias
                out.append(alias or field_name)
        return out

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def apply_enrichment(self, result: EnrichmentResult) -> None:
        """Overwrite the enrichment extension in place."""
        self.emails = ", ".join(result.emails)
        self.web_phones = ", ".join(result.phones)
        for platform in SOCIAL_PLATFORMS:
            setattr(self, platform, ", ".join(result.socials.get(platform, [])))

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AutoSequenceState(BaseModel):
    """Persisted auto-sequence progress (resume position)."""
    model_config = ConfigDict(populate_by_name=True)

    cursor_index: int = Field(default=0, ge=0, alias="cursorIndex")
    is_active: bool = Field(default=False, alias="isActive")

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)
