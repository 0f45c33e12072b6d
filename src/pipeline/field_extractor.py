"""
Business Field Extraction - Google Maps place profile

Extracts a structured BusinessRecord from the markup of a map-service place
page using selectolax. Every field is recovered by ordered fallback: the
first selector that yields non-empty text wins, otherwise the field stays
empty. Page layouts change often, so nothing here raises to the caller.

Key Features:
- Lookups scoped to the detail pane once the name element is found
  (prevents bleed from the adjacent results list)
- Phone normalisation through the configured PhonePolicy
- Locale-tolerant rating / review-count parsing
- Multi-strategy place identifier recovery
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union
from urllib.parse import parse_qs, unquote, unquote_plus, urljoin, urlparse

from selectolax.parser import HTMLParser, Node

from ..schemas import BusinessRecord, PhonePolicy
from .phones import normalize_phone


Scope = Union[HTMLParser, Node]

PLACE_ID_RE = re.compile(r"ChIJ[0-9A-Za-z_-]{10,}")
RATING_RE = re.compile(r"(?<![\d.,])\d[.,]\d(?![\d.,])")
REVIEWS_PAREN_RE = re.compile(r"\(\s*(\d[\d.,\s\u00a0\u202f]*)\)")
REVIEWS_SUFFIX_RE = re.compile(r"(\d[\d.,\u00a0\u202f]*)\s*reviews?\b", re.IGNORECASE)
# Material icon glyphs rendered inside Maps buttons live in the private use area
_ICON_GLYPHS_RE = re.compile(r"[\ue000-\uf8ff]")
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class PageDocument:
    """Snapshot of the page context: rendered markup plus its URL."""
    html: str
    url: str = ""


class FieldExtractor:
    """
    Extracts business fields from a place profile page.

    Supports any markup snapshot (Playwright ``page.content()`` or saved
    HTML); the record is always returned, possibly with empty fields.
    """

    def __init__(self, phone_policy: PhonePolicy = PhonePolicy.LOCAL10):
        self.phone_policy = PhonePolicy(phone_policy)

        self.name_selectors = [
            'h1.DUwDvf',
            'h1.fontHeadlineLarge',
            'div[role="main"] h1',
            'h1',
        ]
        self.category_selectors = [
            'button.DqE26',
            'button[jsaction*="category"]',
            'span.DkEaL',
        ]
        self.hours_selectors = [
            'div[aria-label*="Hours"]',
            'div[aria-label*="hours"]',
            'table.eKjh9c',
            'div.t39EBf',
        ]
        self.share_selectors = [
            'button[data-value="Share"]',
            'button[aria-label^="Share"]',
            '[data-item-id="share"]',
        ]
        self.review_control_selectors = [
            'button[aria-label*="eviews"]',
            'button[jsaction*="review"]',
        ]

    def extract(self, document: PageDocument) -> BusinessRecord:
        """Extract a BusinessRecord; absent elements yield empty fields."""
        url = document.url or ""
        try:
            parser = HTMLParser(document.html or "")
        except Exception:
            return BusinessRecord(source_url=url)

        name_node = self._safe(lambda: self._find_first(parser, self.name_selectors))
        name = self._text(name_node) if name_node is not None else ""
        scope: Scope = self._safe(lambda: self._detail_pane(name_node, name)) if name_node is not None else None
        if scope is None:
            scope = parser

        rating, review_count = self._safe_pair(lambda: self._extract_rating_and_reviews(scope))

        return BusinessRecord(
            name=name,
            category=self._safe_text(lambda: self._first_text(scope, self.category_selectors)),
            address=self._safe_text(lambda: self._extract_address(scope)),
            phone=self._safe_text(lambda: self._extract_phone(scope)),
            website=self._safe_text(lambda: self._extract_website(scope, url)),
            rating=rating,
            review_count=review_count,
            hours=self._safe_text(lambda: self._extract_hours(scope)),
            place_id=self._safe_text(lambda: self._extract_place_id(scope, url, name)),
            source_url=url,
            extracted_at=datetime.now(timezone.utc),
        )

    def extract_html(self, html: str, url: str = "") -> BusinessRecord:
        return self.extract(PageDocument(html=html, url=url))

    # -------------------------
    # Guards and text helpers
    # -------------------------
    def _safe(self, fn: Callable):
        try:
            return fn()
        except Exception:
            return None

    def _safe_text(self, fn: Callable[[], Optional[str]]) -> str:
        value = self._safe(fn)
        return value if isinstance(value, str) else ""

    def _safe_pair(self, fn: Callable) -> tuple:
        value = self._safe(fn)
        if isinstance(value, tuple) and len(value) == 2:
            return value
        return ("", "")

    def _clean(self, s: Optional[str]) -> str:
        if not s:
            return ""
        s = _ICON_GLYPHS_RE.sub("", s)
        return _WS_RE.sub(" ", s).strip()

    def _text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self._clean(node.text(deep=True, separator=" "))

    def _attr(self, node: Optional[Node], name: str) -> str:
        if node is None:
            return ""
        return (node.attributes.get(name) or "").strip()

    def _find_first(self, scope: Scope, selectors: List[str]) -> Optional[Node]:
        for selector in selectors:
            for node in scope.css(selector):
                if self._text(node):
                    return node
        return None

    def _first_text(self, scope: Scope, selectors: List[str]) -> str:
        return self._text(self._find_first(scope, selectors))

    # -------------------------
    # Scoping
    # -------------------------
    def _detail_pane(self, name_node: Node, name: str) -> Optional[Node]:
        """Nearest ancestor identifiable as the detail pane, or None."""
        cur = name_node.parent
        while cur is not None:
            if self._attr(cur, 'role') == 'main':
                return cur
            cur = cur.parent
        cur = name_node.parent
        while cur is not None:
            if cur.tag == 'div' and 'm6QErb' in self._attr(cur, 'class').split():
                return cur
            cur = cur.parent
        cur = name_node.parent
        while cur is not None:
            label = self._attr(cur, 'aria-label')
            if cur.tag == 'div' and name and label == name:
                return cur
            cur = cur.parent
        return None

    # -------------------------
    # Field extractors
    # -------------------------
    def _extract_address(self, scope: Scope) -> str:
        node = scope.css_first('button[data-item-id="address"]')
        text = self._text(node)
        if text:
            return text
        label = self._attr(node, 'aria-label')
        if label:
            return self._clean(re.sub(r'^\s*Address:\s*', '', label, flags=re.IGNORECASE))
        tooltip = scope.css_first('[data-tooltip="Copy address"]')
        return self._text(tooltip) or self._clean(self._attr(tooltip, 'aria-label'))

    def _extract_phone(self, scope: Scope) -> str:
        node = scope.css_first('button[data-item-id^="phone:tel:"]')
        if node is not None:
            # data-item-id carries a clean tel value, e.g. "phone:tel:+15551234567"
            item_id = self._attr(node, 'data-item-id')
            phone = normalize_phone(item_id[len('phone:tel:'):], self.phone_policy)
            if phone:
                return phone
            phone = normalize_phone(self._text(node), self.phone_policy)
            if phone:
                return phone
        for link in scope.css('a[href^="tel:"]'):
            phone = normalize_phone(self._attr(link, 'href')[4:], self.phone_policy)
            if phone:
                return phone
        return ""

    def _extract_website(self, scope: Scope, page_url: str) -> str:
        for selector in ('a[data-item-id="authority"]', 'a[aria-label^="Website"]'):
            node = scope.css_first(selector)
            href = self._attr(node, 'href')
            if not href:
                continue
            website = self._resolve_website(href, page_url)
            if website:
                return website
        return ""

    def _resolve_website(self, href: str, page_url: str) -> str:
        absolute = urljoin(page_url, href) if page_url else href
        parsed = urlparse(absolute)
        # Redirect wrappers: https://www.google.com/url?q=https://biz.example/
        if parsed.path == '/url':
            target = parse_qs(parsed.query).get('q', [''])[0]
            if target:
                absolute = target
                parsed = urlparse(target)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            return ""
        return absolute

    def _extract_rating_and_reviews(self, scope: Scope) -> tuple:
        rating = ""
        reviews = ""
        stats = scope.css_first('div.F7nice')
        if stats is not None:
            text = self._text(stats)
            rating = self._parse_rating(text)
            reviews = self._parse_review_count(text)
        if not rating:
            for node in scope.css('span[aria-label*="stars"], span[role="img"][aria-label*="star"]'):
                rating = self._parse_rating(self._attr(node, 'aria-label'))
                if rating:
                    break
        if not reviews:
            for node in scope.css('span[aria-label*="reviews"], button[aria-label*="reviews"]'):
                reviews = self._parse_review_count(self._attr(node, 'aria-label'))
                if reviews:
                    break
        return (rating, reviews)

    def _parse_rating(self, text: str) -> str:
        # Review counts ("(1,234)", "1,234 reviews") would otherwise match as "1,2"
        text = REVIEWS_PAREN_RE.sub(" ", text or "")
        text = REVIEWS_SUFFIX_RE.sub(" ", text)
        m = RATING_RE.search(text)
        return m.group(0).replace(',', '.') if m else ""

    def _parse_review_count(self, text: str) -> str:
        if not text:
            return ""
        m = REVIEWS_PAREN_RE.search(text) or REVIEWS_SUFFIX_RE.search(text)
        if not m:
            return ""
        return re.sub(r"\D", "", m.group(1))

    def _extract_hours(self, scope: Scope) -> str:
        for selector in self.hours_selectors:
            for node in scope.css(selector):
                hours = self._hours_text(node)
                if hours:
                    return hours
        return ""

    def _hours_text(self, node: Node) -> str:
        rows = node.css('tr')
        if rows:
            lines = [self._text(row) for row in rows]
        else:
            raw = node.text(deep=True, separator="\n") or ""
            lines = [self._clean(line) for line in raw.splitlines()]
        lines = [line for line in lines if line]
        if lines:
            return '; '.join(lines)
        label = self._clean(self._attr(node, 'aria-label'))
        return label

    def _extract_place_id(self, scope: Scope, page_url: str, name: str) -> str:
        # (a) share control, (b) review control
        for selectors in (self.share_selectors, self.review_control_selectors):
            for selector in selectors:
                for node in scope.css(selector):
                    pid = self._place_id_in_attributes(node)
                    if pid:
                        return pid
        # (c) page URL, cross-checked against the name
        pid = self._place_id_from_url(page_url, name)
        if pid:
            return pid
        # (d) raw markup of the scoped container
        m = PLACE_ID_RE.search(scope.html or "")
        return m.group(0) if m else ""

    def _place_id_in_attributes(self, node: Node) -> str:
        for value in node.attributes.values():
            if not value:
                continue
            m = PLACE_ID_RE.search(unquote(value))
            if m:
                return m.group(0)
        return ""

    def _place_id_from_url(self, page_url: str, name: str) -> str:
        if not page_url or not name:
            return ""
        decoded = unquote(page_url)
        m = PLACE_ID_RE.search(decoded)
        if not m:
            return ""
        path_match = re.search(r"/maps/place/([^/@?]+)", urlparse(page_url).path or "")
        if not path_match:
            return ""
        slug = self._alnum(unquote_plus(path_match.group(1)))
        name_norm = self._alnum(name)
        if not slug or not name_norm:
            return ""
        # The URL may belong to the previously selected place while the pane
        # already shows the next one
        prefix = name_norm[:min(len(name_norm), 5)]
        return m.group(0) if slug.startswith(prefix) else ""

    def _alnum(self, s: str) -> str:
        return re.sub(r"[\W_]+", "", s.lower())
