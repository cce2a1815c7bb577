"""Wall-clock scheduling in a fixed timezone.

Checks fire at ``target_second`` past each minute in ``target_minutes``
(e.g. 02:30, 06:30, 11:30 ... past every hour).  Rather than polling the
clock for a matching second, the scheduler computes the next fire instant
and sleeps toward it in short slices, so an instant can neither be missed
nor observed twice.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Collection, Optional
from zoneinfo import ZoneInfo

from . import config

logger = logging.getLogger(__name__)

# A fire instant noticed later than this (suspended host, clock jump) is
# dropped rather than run late.
MAX_LATENESS = timedelta(seconds=30)


def now_in_timezone(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Project ``now`` (default: the current instant) into ``tz_name``."""
    tz = ZoneInfo(tz_name)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(tz)


def is_trigger_instant(moment: datetime, target_minutes: Collection[int], target_second: int) -> bool:
    return moment.minute in target_minutes and moment.second == target_second


def is_quiet_hours(hour: int, start: int, end: int) -> bool:
    """True if ``hour`` falls in the quiet window.

    ``start < end`` is the same-day range ``[start, end)``; otherwise the
    window wraps midnight: ``[start, 24) ∪ [0, end)``.
    """
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def next_fire_time(moment: datetime, target_minutes: Collection[int], target_second: int) -> datetime:
    """Earliest instant strictly after ``moment`` that is a trigger instant.

    The result is expressed in ``moment``'s timezone.  Stepping happens in
    UTC so DST transitions neither skip nor repeat a fire.
    """
    if moment.tzinfo is None:
        raise ValueError("moment must be timezone-aware")
    if not target_minutes:
        raise ValueError("target_minutes is empty")
    if not 0 <= target_second <= 59:
        raise ValueError(f"target_second out of range: {target_second}")

    tz = moment.tzinfo
    utc_now = moment.astimezone(timezone.utc)
    minute_start = utc_now.replace(second=0, microsecond=0)
    # Two hours always contains the next match, even across a DST change.
    for step in range(2 * 60 + 1):
        candidate = minute_start + timedelta(minutes=step, seconds=target_second)
        if candidate <= utc_now:
            continue
        local = candidate.astimezone(tz)
        if is_trigger_instant(local, target_minutes, target_second):
            return local
    raise ValueError(f"no trigger instant found for minutes {sorted(target_minutes)}")


@dataclass(frozen=True)
class TimeGate:
    """Schedule and quiet-hours decisions for one configuration."""

    tz_name: str
    target_minutes: frozenset
    target_second: int
    quiet_start: int
    quiet_end: int

    @classmethod
    def from_config(cls) -> "TimeGate":
        return cls(
            tz_name=config.TIMEZONE,
            target_minutes=frozenset(config.TARGET_MINUTES),
            target_second=config.TARGET_SECOND,
            quiet_start=config.QUIET_HOURS_START,
            quiet_end=config.QUIET_HOURS_END,
        )

    def now(self, now: Optional[datetime] = None) -> datetime:
        return now_in_timezone(self.tz_name, now)

    def is_trigger_instant(self, now: Optional[datetime] = None) -> bool:
        return is_trigger_instant(self.now(now), self.target_minutes, self.target_second)

    def is_quiet(self, now: Optional[datetime] = None) -> bool:
        return is_quiet_hours(self.now(now).hour, self.quiet_start, self.quiet_end)

    def next_fire_time(self, now: Optional[datetime] = None) -> datetime:
        return next_fire_time(self.now(now), self.target_minutes, self.target_second)

    def describe(self) -> str:
        minutes = ",".join(str(m) for m in sorted(self.target_minutes))
        return (
            f"minutes {minutes} at :{self.target_second:02d}, "
            f"quiet {self.quiet_start:02d}:00-{self.quiet_end:02d}:00 ({self.tz_name})"
        )


class Scheduler:
    """Fire ``callback`` at every trigger instant of ``gate``.

    Each fire runs the callback on its own daemon thread so the scheduler
    keeps ticking while a check is still outstanding.  Overlap is handled
    by the callback (see StockMonitor.run_cycle), not here.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        gate: TimeGate,
        poll_interval: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None,
        threaded: bool = True,
    ) -> None:
        self.callback = callback
        self.gate = gate
        self.poll_interval = min(max(poll_interval, 0.01), 1.0)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._threaded = threaded
        self._stop = threading.Event()
        self.next_fire: Optional[datetime] = None
        self.fired = 0

    def _now(self) -> datetime:
        return self.gate.now(self._clock())

    def tick(self) -> float:
        """Fire if due; return how long to wait before the next tick."""
        now = self._now()
        if self.next_fire is None:
            self.next_fire = self.gate.next_fire_time(now)
            logger.info("Next stock check at %s", self.next_fire.strftime("%H:%M:%S %Z"))

        if now >= self.next_fire:
            late = now - self.next_fire
            if late > MAX_LATENESS:
                logger.warning(
                    "Missed stock check due at %s (%.0fs late); skipping it.",
                    self.next_fire.strftime("%H:%M:%S"), late.total_seconds(),
                )
            else:
                self._dispatch()
            self.next_fire = self.gate.next_fire_time(max(now, self.next_fire))
            logger.debug("Next stock check at %s", self.next_fire.strftime("%H:%M:%S %Z"))

        remaining = (self.next_fire - now).total_seconds()
        return max(0.0, min(self.poll_interval, remaining))

    def _dispatch(self) -> None:
        self.fired += 1
        if not self._threaded:
            self._run_callback()
            return
        t = threading.Thread(target=self._run_callback, name="stock-check", daemon=True)
        t.start()

    def _run_callback(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.exception("Scheduled stock check raised")

    def run_forever(self) -> None:
        logger.info("Scheduler started: %s", self.gate.describe())
        while not self._stop.is_set():
            try:
                wait = self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
                wait = self.poll_interval
            self._stop.wait(wait)
        logger.info("Scheduler stopped.")

    def stop(self) -> None:
        self._stop.set()


__all__ = [
    "now_in_timezone",
    "is_trigger_instant",
    "is_quiet_hours",
    "next_fire_time",
    "TimeGate",
    "Scheduler",
]
