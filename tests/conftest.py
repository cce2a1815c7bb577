from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

import pytest
import requests

from garden_stock_notifier.schedule import TimeGate
from garden_stock_notifier.scraper import StockSnapshot


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", json_data: Any = None) -> None:
        self.status_code = status_code
        self.text = text
        self._json = json_data

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("not JSON")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Stands in for requests.Session; replays ``outcomes`` in order.

    An outcome is either a FakeResponse or an exception instance to raise.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes: List[Any] = list(outcomes)
        self.calls: List[dict] = []
        self.closed = False

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def close(self) -> None:
        self.closed = True


def utc(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2026, 6, 21, hour, minute, second, tzinfo=timezone.utc)


def make_snapshot(**categories: List[str]) -> StockSnapshot:
    """``make_snapshot(Seed=["Mango"], Egg=["Bug Egg"])``"""
    return StockSnapshot.from_raw({label: [{"name": n} for n in names] for label, names in categories.items()})


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def gate() -> TimeGate:
    return TimeGate(
        tz_name="UTC",
        target_minutes=frozenset({2, 6, 11}),
        target_second=30,
        quiet_start=22,
        quiet_end=7,
    )


@pytest.fixture
def daytime() -> Clock:
    return Clock(utc(12, 2, 30))
