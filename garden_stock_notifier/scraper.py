from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from . import config
from .utils import HTTPError, get_http_session, raise_for_status, redact_url

logger = logging.getLogger(__name__)

# Fixed iteration order for categories everywhere (matching, messages, logs).
CATEGORY_ORDER: Tuple[str, ...] = ("Seed", "Egg", "Gear")

# Headings on the HTML stock page. Honey and cosmetics fold into Gear.
HTML_HEADINGS: Dict[str, str] = {
    "SEEDS STOCK": "Seed",
    "EGG STOCK": "Egg",
    "GEAR STOCK": "Gear",
    "HONEY STOCK": "Gear",
    "COSMETICS STOCK": "Gear",
}

# Keys in the JSON API payload.
JSON_KEYS: Dict[str, str] = {
    "seedsStock": "Seed",
    "eggStock": "Egg",
    "gearStock": "Gear",
    "honeyStock": "Gear",
    "cosmeticsStock": "Gear",
}

CATEGORY_ALIASES: Dict[str, str] = {
    **{label: label for label in CATEGORY_ORDER},
    **HTML_HEADINGS,
    **JSON_KEYS,
}

_HTML_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Cache-Control": "max-age=0",
    "DNT": "1",
    "Sec-CH-UA": '"Not/A)Brand";v="99", "Google Chrome";v="125", "Chromium";v="125"',
    "Sec-CH-UA-Mobile": "?0",
    "Sec-CH-UA-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

_JSON_HEADERS = {
    "Accept": "application/json",
    "Referer": "https://growagarden.gg/stocks",
}


class StockFormatError(ValueError):
    """The stock source answered, but not in the shape we know how to read."""


@dataclass(frozen=True)
class StockItem:
    name: str
    raw_category: str


@dataclass(frozen=True)
class StockSnapshot:
    """Point-in-time view of the shop, grouped by category label.

    Every label in CATEGORY_ORDER is present (possibly empty).  Build it
    with :meth:`from_raw`, which validates entries at the boundary.
    """

    categories: Mapping[str, Tuple[StockItem, ...]] = field(
        default_factory=lambda: MappingProxyType({label: () for label in CATEGORY_ORDER})
    )

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        category_map: Optional[Mapping[str, str]] = None,
    ) -> "StockSnapshot":
        """Normalise ``{source_category: [entries]}`` into a snapshot.

        Entries may be dicts with a ``name`` key, plain strings or StockItem
        objects.  Unknown categories and nameless entries are dropped and
        logged.
        """
        mapping = CATEGORY_ALIASES if category_map is None else category_map
        grouped: Dict[str, List[StockItem]] = {label: [] for label in CATEGORY_ORDER}

        for raw_category, entries in raw.items():
            label = mapping.get(raw_category)
            if label not in grouped:
                logger.debug("Ignoring unknown stock category %r", raw_category)
                continue
            if entries is None:
                continue
            if not isinstance(entries, (list, tuple)):
                logger.warning("Stock category %r is not a list; skipping it", raw_category)
                continue
            for entry in entries:
                name = _entry_name(entry)
                if not name:
                    logger.debug("Dropping nameless entry in %r: %r", raw_category, entry)
                    continue
                grouped[label].append(StockItem(name=name, raw_category=str(raw_category)))

        return cls(MappingProxyType({label: tuple(items) for label, items in grouped.items()}))

    def get(self, category: str) -> Tuple[StockItem, ...]:
        return self.categories.get(category, ())

    def items(self) -> Iterator[Tuple[str, StockItem]]:
        """Yield ``(category, item)`` pairs in the fixed category order."""
        for label in CATEGORY_ORDER:
            for item in self.get(label):
                yield label, item

    def __len__(self) -> int:
        return sum(len(self.get(label)) for label in CATEGORY_ORDER)

    def is_empty(self) -> bool:
        return len(self) == 0


def _entry_name(entry: Any) -> str:
    if isinstance(entry, StockItem):
        return entry.name.strip()
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict):
        name = entry.get("name")
        if isinstance(name, str):
            return name.strip()
    return ""


# ---- Parsers -----------------------------------------------------------------

def _own_text(el: Tag) -> str:
    """Text directly inside ``el``, ignoring child elements (e.g. quantity badges)."""
    return "".join(el.find_all(string=True, recursive=False)).strip()


def parse_html_stock(html: str) -> StockSnapshot:
    """Parse the public stock page.

    Each category is an ``<h2>`` whose text contains e.g. ``SEEDS STOCK``,
    followed by a ``<ul>`` whose ``<li>`` items carry the item name as the
    direct text of their first ``<span>``.
    """
    soup = BeautifulSoup(html, "html.parser")
    headings = soup.find_all("h2")
    raw: Dict[str, List[str]] = {}
    found_any = False

    for heading_text in HTML_HEADINGS:
        for h2 in headings:
            if heading_text not in h2.get_text(" ", strip=True):
                continue
            found_any = True
            ul = h2.find_next_sibling("ul")
            if ul is None:
                logger.debug("Heading %r has no item list", heading_text)
                continue
            names = raw.setdefault(heading_text, [])
            for li in ul.find_all("li"):
                span = li.find("span")
                if span is None:
                    continue
                name = _own_text(span)
                if name:
                    names.append(name)

    if not found_any:
        raise StockFormatError("no stock headings found on page (layout changed or request blocked?)")

    return StockSnapshot.from_raw(raw, HTML_HEADINGS)


def parse_json_stock(payload: Any) -> StockSnapshot:
    """Parse the batched API response: ``[{"result": {"data": {"json": {...}}}}]``."""
    if not isinstance(payload, list) or not payload:
        raise StockFormatError("expected a non-empty JSON list")
    data: Any = payload[0]
    for key in ("result", "data", "json"):
        data = data.get(key) if isinstance(data, dict) else None
    if not isinstance(data, dict):
        raise StockFormatError("missing result.data.json object")
    raw = {key: data.get(key) for key in JSON_KEYS if key in data}
    return StockSnapshot.from_raw(raw, JSON_KEYS)


# ---- Fetch -------------------------------------------------------------------

def fetch_stock_snapshot(
    source: Optional[str] = None,
    url: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Optional[StockSnapshot]:
    """Fetch and parse the current stock.

    Returns None on network errors, timeouts, non-2xx responses or an
    unexpected response shape.  No retries: the next scheduled cycle tries
    again from scratch.
    """
    source = (source or config.STOCK_SOURCE).lower()
    if url is None:
        if source == config.STOCK_SOURCE:
            url = config.STOCK_URL
        else:
            url = config.JSON_STOCK_URL if source == "json" else config.HTML_STOCK_URL
    if timeout is None:
        timeout = config.REQUEST_TIMEOUT_SECONDS

    close_session = False
    if session is None:
        session = get_http_session(config.PROXY_URL)
        close_session = True

    host = url.split("/")[2] if "://" in url else url
    logger.info("Fetching %s stock from %s...", source, host)
    if config.PROXY_URL:
        logger.info("Using proxy %s", redact_url(config.PROXY_URL))

    try:
        headers = _JSON_HEADERS if source == "json" else _HTML_HEADERS
        resp = session.get(url, headers=headers, timeout=timeout)
        raise_for_status(resp)
        if source == "json":
            snapshot = parse_json_stock(resp.json())
        else:
            snapshot = parse_html_stock(resp.text)
    except requests.Timeout:
        logger.error("Timed out after %ss fetching stock from %s", timeout, host)
        return None
    except HTTPError as e:
        logger.error("Stock request to %s failed: %s", host, e)
        return None
    except ValueError as e:
        # StockFormatError and JSON decode errors.
        logger.error("Unexpected stock response from %s: %s", host, e)
        return None
    except requests.RequestException as e:
        logger.error("Network error fetching stock from %s: %s", host, e)
        return None
    finally:
        if close_session:
            session.close()

    logger.info(
        "Fetched stock: %s",
        ", ".join(f"{label}={len(snapshot.get(label))}" for label in CATEGORY_ORDER),
    )
    return snapshot


__all__ = [
    "CATEGORY_ORDER",
    "StockItem",
    "StockSnapshot",
    "StockFormatError",
    "parse_html_stock",
    "parse_json_stock",
    "fetch_stock_snapshot",
]
