"""
Website Contact Mining - Emails, Phones and Social Profiles

Mines raw website markup for contact details with regular expressions only.
No DOM parse is attempted: the input is third-party, uncontrolled HTML and the
miner must also work on fragments and broken documents.

Known pattern risks are noted next to each pattern.
"""

from __future__ import annotations

import re
from typing import Dict, List
from urllib.parse import urlparse

from ..schemas import (
    MAX_EMAILS,
    MAX_PHONES,
    MIN_PHONE_DIGITS,
    SOCIAL_PLATFORMS,
    EnrichmentResult,
    PhonePolicy,
)
from .phones import normalize_phone


# False positives: versioned asset names ("logo@2x.png") look like addresses,
# filtered by ASSET_TLDS below. False negatives: obfuscated "name [at] domain".
MAILTO_RE = re.compile(r"mailto:\s*([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.IGNORECASE)
EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
ASSET_TLDS = {"png", "jpg", "jpeg", "gif", "svg", "webp", "css", "js", "ico"}

# tel: hrefs are authored as phone numbers and are reliable.
TEL_RE = re.compile(r"tel:\s*(\+?[0-9\s\-().]{7,})", re.IGNORECASE)
# North-American-leaning digit groups. False positives: long numeric IDs,
# timestamps and tracking parameters inside scripts can match.
PLAIN_PHONE_RE = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

# The lookbehind keeps the domain from being glued to a longer host label
# ("wix.com/" must not read as "x.com/").
_HOST_PREFIX = r"(?<![\w.@-])(?:(?:https?:)?//)?(?:www\.|m\.|mobile\.|[a-z]{2}-[a-z]{2}\.)?"
_HANDLE = r"([a-zA-Z0-9._-]+)"

SOCIAL_PATTERNS: Dict[str, re.Pattern] = {
    "facebook": re.compile(_HOST_PREFIX + r"(?:facebook\.com|fb\.com|fb\.me)/" + _HANDLE, re.IGNORECASE),
    "instagram": re.compile(_HOST_PREFIX + r"(?:instagram\.com|instagr\.am)/" + _HANDLE, re.IGNORECASE),
    "linkedin": re.compile(_HOST_PREFIX + r"linkedin\.com/(?:company|in|school)/" + _HANDLE, re.IGNORECASE),
    "twitter": re.compile(_HOST_PREFIX + r"(?:twitter\.com|x\.com)/" + _HANDLE, re.IGNORECASE),
    "whatsapp": re.compile(
        _HOST_PREFIX + r"(?:wa\.me/|api\.whatsapp\.com/send\?phone=|chat\.whatsapp\.com/)" + _HANDLE,
        re.IGNORECASE,
    ),
    "telegram": re.compile(_HOST_PREFIX + r"(?:t\.me|telegram\.me)/" + _HANDLE, re.IGNORECASE),
}

# Path segments that are widgets, trackers or site sections, not profiles.
# Unlisted sections (facebook.com/marketplace, x.com/explore) still pass as
# profiles.
EXCLUDED_SEGMENTS: Dict[str, set] = {
    "facebook": {
        "tr", "plugins", "sharer", "sharer.php", "share.php", "share", "dialog",
        "login", "login.php", "photo.php", "events", "groups", "watch", "help", "hashtag",
    },
    "instagram": {"p", "reel", "explore", "embed.js", "accounts"},
    "twitter": {"intent", "share", "home", "widgets", "widgets.js", "search", "hashtag", "i"},
    "telegram": {"share"},
}
SCRIPT_SUFFIXES = (".js",)


class ContactMiner:
    """Pure text miner producing an EnrichmentResult."""

    def __init__(self, phone_policy: PhonePolicy = PhonePolicy.LOCAL10) -> None:
        self.phone_policy = PhonePolicy(phone_policy)

    def mine(self, html: str, base_url: str = "") -> EnrichmentResult:
        text = html or ""
        return EnrichmentResult(
            emails=self.mine_emails(text),
            phones=self.mine_phones(text),
            socials=self.mine_socials(text, base_url),
        )

    def mine_emails(self, text: str) -> List[str]:
        found: List[str] = []
        for m in MAILTO_RE.finditer(text):
            found.append(m.group(1))
        for m in EMAIL_RE.finditer(text):
            found.append(m.group(1))
        out: List[str] = []
        for email in found:
            email = email.strip().lower().rstrip('.')
            if email.rsplit('.', 1)[-1] in ASSET_TLDS:
                continue
            if email not in out:
                out.append(email)
            if len(out) >= MAX_EMAILS:
                break
        return out

    def mine_phones(self, text: str) -> List[str]:
        raw: List[str] = [m.group(1) for m in TEL_RE.finditer(text)]
        raw.extend(m.group(0) for m in PLAIN_PHONE_RE.finditer(text))
        out: List[str] = []
        for value in raw:
            digits = re.sub(r"\D", "", value)
            if len(digits) < MIN_PHONE_DIGITS:
                continue
            phone = normalize_phone(digits, self.phone_policy)
            if phone not in out:
                out.append(phone)
            if len(out) >= MAX_PHONES:
                break
        return out

    def mine_socials(self, text: str, base_url: str = "") -> Dict[str, List[str]]:
        scheme = urlparse(base_url).scheme if base_url else ""
        if scheme not in ("http", "https"):
            scheme = "https"
        socials: Dict[str, List[str]] = {}
        for platform in SOCIAL_PLATFORMS:
            excluded = EXCLUDED_SEGMENTS.get(platform, set())
            links: List[str] = []
            for m in SOCIAL_PATTERNS[platform].finditer(text):
                handle = m.group(1).rstrip('.')
                if not handle or handle.lower() in excluded or handle.lower().endswith(SCRIPT_SUFFIXES):
                    continue
                link = m.group(0)
                if link.endswith('.'):
                    link = link.rstrip('.')
                if link.startswith('//'):
                    link = f"{scheme}:{link}"
                elif not link.lower().startswith(('http://', 'https://')):
                    link = 'https://' + link
                if link not in links:
                    links.append(link)
            socials[platform] = links
        return socials


def mine(html: str, base_url: str = "") -> EnrichmentResult:
    """Module-level shortcut using the default phone policy."""
    return ContactMiner().mine(html, base_url)
