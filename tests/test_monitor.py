import threading

import pytest
from conftest import Clock, make_snapshot, utc

from garden_stock_notifier.monitor import CycleStatus, StockMonitor, build_message
from garden_stock_notifier.matcher import MatchResult


class Recorder:
    def __init__(self, result=True):
        self.result = result
        self.bodies = []

    def __call__(self, body):
        self.bodies.append(body)
        return self.result


def make_monitor(gate, clock, snapshots, send=None, keywords=("Mango", "Bug Egg"), **kwargs):
    feed = list(snapshots)

    def fetch():
        return feed.pop(0) if len(feed) > 1 else feed[0]

    return StockMonitor(
        fetch=fetch,
        send=send or Recorder(),
        keywords=list(keywords),
        gate=gate,
        clock=clock,
        **kwargs,
    )


def test_new_items_produce_one_consolidated_alert(gate, daytime):
    send = Recorder()
    snap = make_snapshot(Seed=["Mango"], Egg=["Bug Egg"])
    monitor = make_monitor(gate, daytime, [snap], send=send)

    assert monitor.run_cycle() is CycleStatus.SENT

    assert monitor.notified.snapshot() == {"Mango|Seed", "Bug Egg|Egg"}
    assert len(send.bodies) == 1
    assert "*Mango* (Category: Seed, keyword: Mango)" in send.bodies[0]
    assert "*Bug Egg* (Category: Egg, keyword: Bug Egg)" in send.bodies[0]


def test_unchanged_stock_does_not_alert_again(gate, daytime):
    send = Recorder()
    snap = make_snapshot(Seed=["Mango"], Egg=["Bug Egg"])
    monitor = make_monitor(gate, daytime, [snap, snap], send=send)

    monitor.run_cycle()
    for _ in range(5):
        assert monitor.run_cycle() is CycleStatus.NO_MATCHES
    assert len(send.bodies) == 1


def test_restock_resets_history_and_alerts_again(gate, daytime):
    send = Recorder()
    first = make_snapshot(Seed=["Mango", "Carrot"])
    restocked = make_snapshot(Seed=["Mango", "Kiwi"])
    monitor = make_monitor(gate, daytime, [first, restocked], send=send)

    assert monitor.run_cycle() is CycleStatus.SENT
    assert monitor.run_cycle() is CycleStatus.SENT
    assert len(send.bodies) == 2
    assert "Mango" in send.bodies[1]
    assert monitor.notified.snapshot() == {"Mango|Seed"}


def test_history_survives_keyword_additions_within_epoch(gate, daytime):
    snap = make_snapshot(Seed=["Mango", "Carrot"])
    monitor = make_monitor(gate, daytime, [snap])
    monitor.run_cycle()
    monitor.keywords.append("Carrot")

    send = Recorder()
    monitor.send = send
    assert monitor.run_cycle() is CycleStatus.SENT
    assert "Carrot" in send.bodies[0]
    assert "Mango" not in send.bodies[0]


def test_fetch_failure_leaves_state_untouched(gate, daytime):
    send = Recorder()
    monitor = make_monitor(gate, daytime, [None], send=send)
    monitor.notified.add("Mango|Seed")
    monitor.signatures.previous = "Mango|Seed"

    assert monitor.run_cycle() is CycleStatus.FETCH_FAILED
    assert monitor.notified.snapshot() == {"Mango|Seed"}
    assert monitor.signatures.previous == "Mango|Seed"
    assert send.bodies == []


@pytest.mark.parametrize("policy", ["before_send", "after_success"])
def test_quiet_hours_suppress_send_but_mark_items(gate, policy):
    send = Recorder()
    night = Clock(utc(23, 2, 30))
    snap = make_snapshot(Seed=["Mango"])
    monitor = make_monitor(gate, night, [snap], send=send, mark_policy=policy)

    assert monitor.run_cycle() is CycleStatus.QUIET_HOURS
    assert send.bodies == []
    assert monitor.notified.snapshot() == {"Mango|Seed"}

    night.now = utc(8, 2, 30)
    assert monitor.run_cycle() is CycleStatus.NO_MATCHES


def test_failed_send_is_not_retried_with_before_send_policy(gate, daytime):
    send = Recorder(result=False)
    snap = make_snapshot(Seed=["Mango"])
    monitor = make_monitor(gate, daytime, [snap], send=send, mark_policy="before_send")

    assert monitor.run_cycle() is CycleStatus.SEND_FAILED
    assert monitor.notified.contains("Mango|Seed")
    assert monitor.run_cycle() is CycleStatus.NO_MATCHES
    assert len(send.bodies) == 1


def test_failed_send_is_retried_with_after_success_policy(gate, daytime):
    send = Recorder(result=False)
    snap = make_snapshot(Seed=["Mango"])
    monitor = make_monitor(gate, daytime, [snap], send=send, mark_policy="after_success")

    assert monitor.run_cycle() is CycleStatus.SEND_FAILED
    assert not monitor.notified.contains("Mango|Seed")

    send.result = True
    assert monitor.run_cycle() is CycleStatus.SENT
    assert monitor.notified.contains("Mango|Seed")
    assert monitor.run_cycle() is CycleStatus.NO_MATCHES
    assert len(send.bodies) == 2


def test_unknown_mark_policy_rejected(gate, daytime):
    with pytest.raises(ValueError):
        make_monitor(gate, daytime, [None], mark_policy="sometimes")


def test_overlapping_call_is_dropped(gate, daytime):
    entered = threading.Event()
    release = threading.Event()
    snap = make_snapshot(Seed=["Mango"])

    def slow_fetch():
        entered.set()
        release.wait(5)
        return snap

    send = Recorder()
    monitor = StockMonitor(fetch=slow_fetch, send=send, keywords=["Mango"], gate=gate, clock=daytime)
    results = []
    worker = threading.Thread(target=lambda: results.append(monitor.run_cycle()))
    worker.start()
    assert entered.wait(5)

    assert monitor.is_running
    assert monitor.run_cycle() is CycleStatus.SKIPPED
    assert monitor.signatures.previous == ""
    assert len(monitor.notified) == 0

    release.set()
    worker.join(5)
    assert results == [CycleStatus.SENT]
    assert not monitor.is_running
    assert len(send.bodies) == 1


def test_unexpected_error_is_contained_and_lock_released(gate, daytime):
    def broken_fetch():
        raise RuntimeError("parser exploded")

    monitor = StockMonitor(fetch=broken_fetch, send=Recorder(), keywords=["Mango"], gate=gate, clock=daytime)
    assert monitor.run_cycle() is CycleStatus.ERROR
    assert not monitor.is_running

    monitor.fetch = lambda: make_snapshot(Seed=["Mango"])
    assert monitor.run_cycle() is CycleStatus.SENT


def test_build_message_layout():
    body = build_message([
        MatchResult("Mango", "Seed", "Mango"),
        MatchResult("Bug Egg", "Egg", "egg"),
    ])
    assert body.splitlines() == [
        "*Grow A Garden Stock Alert!* 🌱",
        "",
        "New items in stock:",
        "- *Mango* (Category: Seed, keyword: Mango)",
        "- *Bug Egg* (Category: Egg, keyword: egg)",
    ]
