"""Stock signatures.

A signature is the sorted, comma-joined list of ``name|category`` tokens of
a snapshot.  Two snapshots holding the same items produce the same
signature whatever order the source listed them in, so comparing
signatures tells us whether the shop restocked.
"""

from __future__ import annotations

import logging

from .scraper import StockSnapshot

logger = logging.getLogger(__name__)


def item_token(name: str, category: str) -> str:
    return f"{name}|{category}"


def compute_signature(snapshot: StockSnapshot) -> str:
    tokens = [item_token(item.name, category) for category, item in snapshot.items() if item.name]
    return ",".join(sorted(tokens))


class SignatureTracker:
    """Remembers the previous cycle's signature."""

    def __init__(self) -> None:
        # "" means no prior cycle.
        self.previous = ""

    def update(self, signature: str) -> bool:
        """Store ``signature``; return True if it differs from the previous one."""
        if signature == self.previous:
            return False
        if self.previous:
            logger.info("Stock composition changed since last cycle.")
        else:
            logger.info("First stock composition recorded.")
        self.previous = signature
        return True


__all__ = ["item_token", "compute_signature", "SignatureTracker"]
