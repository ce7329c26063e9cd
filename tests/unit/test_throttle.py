"""Unit tests for the process-wide throttled warning gate."""

import logging

from elastic_db.utils.throttle import ThrottledWarning, get_throttled_warning


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_emits_once_per_interval(caplog):
    clock = FakeClock()
    warning = ThrottledWarning(logging.getLogger("throttle-test"), "overloaded", 5.0, clock)

    with caplog.at_level(logging.WARNING, logger="throttle-test"):
        assert warning() is True
        clock.now = 104.5
        assert warning() is False
        clock.now = 105.0
        assert warning() is True

    assert [record.getMessage() for record in caplog.records] == ["overloaded", "overloaded"]


def test_shared_gate_is_reused():
    first = get_throttled_warning("throttle-test", "overloaded", 5.0)
    second = get_throttled_warning("throttle-test", "overloaded", 5.0)

    assert first is second


def test_first_interval_wins_for_shared_gate():
    first = get_throttled_warning("throttle-test", "overloaded", 5.0)
    second = get_throttled_warning("throttle-test", "overloaded", 1.0)

    assert first is second
    assert second.interval == 5.0


def test_distinct_messages_get_distinct_gates():
    first = get_throttled_warning("throttle-test", "overloaded", 5.0)
    second = get_throttled_warning("throttle-test", "saturated", 5.0)

    assert first is not second
