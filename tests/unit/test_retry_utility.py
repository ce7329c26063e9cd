"""Unit tests for the widening backoff window and its schedulers."""

import asyncio
import gc
import logging

import pytest
from pydantic import ValidationError

from elastic_db.config import BackoffConfig
from elastic_db.contracts import BackoffRange
from elastic_db.utils import retry as retry_module
from elastic_db.utils.retry import schedule_retry, wait_for_backoff


class TestBackoffRange:
    """Test suite for BackoffRange.consume."""

    def test_defaults_match_config(self):
        backoff = BackoffRange.from_config(BackoffConfig())

        assert (backoff.floor, backoff.ceiling) == (5000, 10000)

    def test_widening_sequence(self):
        backoff = BackoffRange.from_config(BackoffConfig())
        windows = []
        for _ in range(7):
            backoff.consume(rng=lambda: 0.0)
            windows.append((backoff.floor, backoff.ceiling))

        assert windows == [
            (10000, 20000),
            (15000, 30000),
            (20000, 40000),
            (25000, 50000),
            (30000, 60000),
            (30000, 60000),
            (30000, 60000),
        ]

    def test_delay_within_window_and_caps_hold(self):
        backoff = BackoffRange.from_config(BackoffConfig())
        for rng_value in [0.0, 0.999999, 0.5, 0.25, 0.75, 0.999999, 0.0, 0.5, 0.1]:
            floor, ceiling = backoff.floor, backoff.ceiling
            delay = backoff.consume(rng=lambda value=rng_value: value)

            assert floor <= delay < ceiling
            assert backoff.floor >= floor
            assert backoff.ceiling >= ceiling
            assert backoff.floor <= 30000
            assert backoff.ceiling <= 60000
            assert backoff.floor < backoff.ceiling

    def test_steps_do_not_overshoot_caps(self):
        backoff = BackoffRange(
            floor=0, ceiling=7, floor_step=4, ceiling_step=4, floor_cap=5, ceiling_cap=9
        )
        backoff.consume()
        backoff.consume()

        assert (backoff.floor, backoff.ceiling) == (5, 9)

    def test_inverted_window_rejected(self):
        with pytest.raises(ValidationError):
            BackoffRange(floor=10, ceiling=10)

    def test_config_rejects_steps_that_could_invert(self):
        with pytest.raises(ValidationError):
            BackoffConfig(floor_step_ms=20000, ceiling_step_ms=10000)


class TestSchedulers:
    """Test suite for wait_for_backoff and schedule_retry."""

    @pytest.mark.asyncio
    async def test_wait_for_backoff_sleeps_and_widens(self):
        backoff = BackoffRange(
            floor=1, ceiling=2, floor_step=1, ceiling_step=1, floor_cap=2, ceiling_cap=3
        )

        delay = await wait_for_backoff(backoff)

        assert delay == pytest.approx(0.001)
        assert (backoff.floor, backoff.ceiling) == (2, 3)

    @pytest.mark.asyncio
    async def test_schedule_retry_does_not_block_caller(self):
        backoff = BackoffRange(
            floor=1, ceiling=2, floor_step=1, ceiling_step=1, floor_cap=2, ceiling_cap=3
        )
        received: asyncio.Future = asyncio.get_running_loop().create_future()

        async def retry_fn(payload):
            received.set_result(payload)

        handle = schedule_retry(backoff, retry_fn, ["pair-1", "pair-2"])

        assert not received.done()
        assert (backoff.floor, backoff.ceiling) == (2, 3)
        assert await asyncio.wait_for(received, timeout=1) == ["pair-1", "pair-2"]
        assert isinstance(handle, asyncio.TimerHandle)

    @pytest.mark.asyncio
    async def test_schedule_retry_can_be_cancelled(self):
        backoff = BackoffRange(floor=50, ceiling=60)
        calls = []

        async def retry_fn(payload):
            calls.append(payload)

        handle = schedule_retry(backoff, retry_fn, "query")
        handle.cancel()
        await asyncio.sleep(0.08)

        assert calls == []

    @pytest.mark.asyncio
    async def test_failed_scheduled_retry_is_logged_and_released(self, caplog):
        backoff = BackoffRange(
            floor=1, ceiling=2, floor_step=1, ceiling_step=1, floor_cap=2, ceiling_cap=3
        )
        started: asyncio.Future = asyncio.get_running_loop().create_future()

        async def retry_fn(payload):
            started.set_result(payload)
            raise RuntimeError(f"retry failed for {payload}")

        with caplog.at_level(logging.ERROR):
            schedule_retry(backoff, retry_fn, "query")
            await asyncio.wait_for(started, timeout=1)
            for _ in range(10):
                if not retry_module._pending_retries:
                    break
                await asyncio.sleep(0)
            gc.collect()

        assert retry_module._pending_retries == set()
        failures = [r for r in caplog.records if r.name == "elastic_db.utils.retry"]
        assert len(failures) == 1
        assert "retry failed for query" in failures[0].getMessage()
        assert "never retrieved" not in caplog.text
