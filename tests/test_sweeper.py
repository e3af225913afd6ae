import logging
import threading

import pytest

from dispatch import TimeoutSweeper


def test_run_cycle_returns_count():
    sweeper = TimeoutSweeper(lambda: 3, interval_seconds=1)
    assert sweeper.run_cycle() == 3


def test_failed_cycle_is_logged_and_loop_continues(caplog):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return 2

    sweeper = TimeoutSweeper(flaky, interval_seconds=0.001)
    with caplog.at_level(logging.ERROR, logger="dispatch.sweeper"):
        cycles = sweeper.run_forever(max_cycles=3)

    assert cycles == 3
    assert len(calls) == 3
    assert "Error during scheduled order timeout check" in caplog.text


def test_cycles_never_overlap():
    active = []
    overlaps = []

    def slow():
        if active:
            overlaps.append(1)
        active.append(1)
        threading.Event().wait(0.01)
        active.pop()
        return 0

    TimeoutSweeper(slow, interval_seconds=0.001).run_forever(max_cycles=5)
    assert overlaps == []


def test_stop_ends_the_loop():
    sweeper = TimeoutSweeper(lambda: 0, interval_seconds=30)
    worker = threading.Thread(target=sweeper.run_forever)
    worker.start()

    sweeper.stop()
    worker.join(timeout=2)
    assert not worker.is_alive()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        TimeoutSweeper(lambda: 0, interval_seconds=0)


def test_sweeper_drives_dispatcher_timeouts(dispatcher, store, panadol_pharmacies, clock):
    order = dispatcher.create_smart_emergency_order(
        "user_1", requested_medicine_name="Panadol", delivery_address="Rainbow St 12",
    )
    clock.advance(minutes=20)

    sweeper = TimeoutSweeper(dispatcher.process_order_timeouts, interval_seconds=0.001)
    assert sweeper.run_cycle() == 1
    assert sweeper.run_cycle() == 0
    assert store.get(order.id).status.value == "no_response"
