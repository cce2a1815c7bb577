"""Keyword matching against a stock snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

from .dedupe import NotifiedSet
from .scraper import StockSnapshot
from .signature import item_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
    name: str
    category: str
    matched_keyword: str

    @property
    def token(self) -> str:
        return item_token(self.name, self.category)


def match_keyword(name: str, keywords: Sequence[str]) -> Optional[str]:
    """Return the first keyword found in ``name`` (case-insensitive), or None."""
    lowered = name.lower()
    for kw in keywords:
        kw = kw.strip()
        if kw and kw.lower() in lowered:
            return kw
    return None


def find_new_matches(
    snapshot: StockSnapshot,
    keywords: Sequence[str],
    notified: NotifiedSet,
) -> List[MatchResult]:
    """Items matching a keyword that have not been alerted on this epoch.

    Categories are scanned in the fixed order Seed, Egg, Gear and items in
    source order.  ``notified`` is only read here.
    """
    matches: List[MatchResult] = []
    batch: Set[str] = set()
    for category, item in snapshot.items():
        if not item.name:
            continue
        token = item_token(item.name, category)
        # Listed twice in one category: report it once.
        if notified.contains(token) or token in batch:
            continue
        kw = match_keyword(item.name, keywords)
        if kw is None:
            continue
        batch.add(token)
        logger.info('Keyword "%s" found in %s (%s)', kw, item.name, category)
        matches.append(MatchResult(name=item.name, category=category, matched_keyword=kw))
    return matches


__all__ = ["MatchResult", "match_keyword", "find_new_matches"]
