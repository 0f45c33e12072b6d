from __future__ import annotations

import re

from src.schemas import PhonePolicy


_NON_DIGIT_RE = re.compile(r"\D")


def normalize_phone(raw: str | None, policy: PhonePolicy = PhonePolicy.LOCAL10) -> str:
    """Reduce a phone string to digits according to ``policy``.

    "+1 (555) 123-4567" -> "5551234567" under LOCAL10 (more than 10 digits
    most likely carries a country code), "15551234567" under KEEP_ALL.
    Returns "" when the input holds no digits.
    """
    if not raw:
        return ""
    digits = _NON_DIGIT_RE.sub("", str(raw))
    if PhonePolicy(policy) is PhonePolicy.LOCAL10 and len(digits) > 10:
        return digits[-10:]
    return digits
