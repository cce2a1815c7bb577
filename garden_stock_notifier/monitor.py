"""Stock check cycle.

One :class:`StockMonitor` owns all mutable state of the notifier: the
previous stock signature, the set of items already alerted on in the
current stock epoch, and the run lock.  Only ``run_cycle`` touches them.
"""
from __future__ import annotations

import enum
import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from . import config
from .dedupe import NotifiedSet
from .matcher import MatchResult, find_new_matches
from .schedule import TimeGate
from .scraper import StockSnapshot, fetch_stock_snapshot
from .signature import SignatureTracker, compute_signature
from .notifier import send_whatsapp_alert

logger = logging.getLogger(__name__)

MESSAGE_HEADER = "*Grow A Garden Stock Alert!* 🌱"


class CycleStatus(str, enum.Enum):
    SKIPPED = "skipped"
    FETCH_FAILED = "fetch_failed"
    NO_MATCHES = "no_matches"
    QUIET_HOURS = "quiet_hours"
    SENT = "sent"
    SEND_FAILED = "send_failed"
    ERROR = "error"


def build_message(matches: Sequence[MatchResult]) -> str:
    """One consolidated WhatsApp body listing every match."""
    lines = [MESSAGE_HEADER, "", "New items in stock:"]
    for m in matches:
        lines.append(f"- *{m.name}* (Category: {m.category}, keyword: {m.matched_keyword})")
    return "\n".join(lines)


class StockMonitor:
    def __init__(
        self,
        fetch: Callable[[], Optional[StockSnapshot]] = fetch_stock_snapshot,
        send: Callable[[str], bool] = send_whatsapp_alert,
        keywords: Optional[Sequence[str]] = None,
        gate: Optional[TimeGate] = None,
        mark_policy: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.fetch = fetch
        self.send = send
        self.keywords: List[str] = list(config.KEYWORDS if keywords is None else keywords)
        self.gate = gate or TimeGate.from_config()
        self.mark_policy = mark_policy or config.NOTIFY_MARK_POLICY
        if self.mark_policy not in config.MARK_POLICIES:
            raise ValueError(f"unknown mark policy {self.mark_policy!r}")
        self._clock = clock

        self.signatures = SignatureTracker()
        self.notified = NotifiedSet()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _now(self) -> datetime:
        return self.gate.now(self._clock() if self._clock else None)

    def run_cycle(self) -> CycleStatus:
        """Run one fetch/match/notify cycle unless one is already in flight.

        Overlapping calls are dropped, not queued.
        """
        if not self._lock.acquire(blocking=False):
            logger.info("Skip check: previous check is still running.")
            return CycleStatus.SKIPPED
        try:
            return self._run()
        except Exception:
            logger.exception("Unexpected error during stock check.")
            return CycleStatus.ERROR
        finally:
            self._lock.release()

    def _run(self) -> CycleStatus:
        logger.info("Running scheduled stock check (%s)...", self._now().strftime("%H:%M:%S %Z"))

        # 1) Fetch
        snapshot = self.fetch()
        if snapshot is None:
            logger.warning("No stock data received. Will retry next scheduled cycle.")
            return CycleStatus.FETCH_FAILED

        # 2) New stock composition starts a new epoch
        if self.signatures.update(compute_signature(snapshot)):
            if len(self.notified):
                logger.info("Resetting %d notified item(s).", len(self.notified))
            self.notified.reset()

        # 3) Match
        matches = find_new_matches(snapshot, self.keywords, self.notified)
        if not matches:
            logger.info("No new keyword items found this cycle.")
            return CycleStatus.NO_MATCHES

        body = build_message(matches)
        tokens = [m.token for m in matches]

        # 4) Mark, gate, send
        if self.mark_policy == "before_send":
            self.notified.add_all(tokens)

        if self.gate.is_quiet(self._clock() if self._clock else None):
            logger.info("QUIET HOURS: notification for %d item(s) suppressed.", len(matches))
            self.notified.add_all(tokens)
            return CycleStatus.QUIET_HOURS

        if self.send(body):
            logger.info("WhatsApp alert SENT for %d item(s).", len(matches))
            self.notified.add_all(tokens)
            return CycleStatus.SENT

        if self.mark_policy == "before_send":
            logger.error("Failed to send WhatsApp alert; %d item(s) will not be retried until stock changes.",
                         len(matches))
        else:
            logger.error("Failed to send WhatsApp alert; will retry %d item(s) next cycle.", len(matches))
        return CycleStatus.SEND_FAILED


__all__ = ["CycleStatus", "StockMonitor", "build_message"]
