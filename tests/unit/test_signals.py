"""Unit tests for cancellation signals and the select race."""

import asyncio

import pytest

from dockersdk.core.signals import CancellationSignal, LinkedSignal, select
from dockersdk.models.errors import OperationCancelledError, RequestTimeoutError


class TestCancellationSignal:
    """Tests for the one-shot signal."""

    def test_cancel_sets_default_reason(self):
        signal = CancellationSignal()
        assert not signal.cancelled

        signal.cancel()

        assert signal.cancelled
        assert isinstance(signal.reason, OperationCancelledError)

    def test_cancel_is_one_shot(self):
        signal = CancellationSignal()
        first = ValueError("first")
        signal.cancel(first)
        signal.cancel(ValueError("second"))

        assert signal.reason is first

    def test_callbacks_run_once(self):
        signal = CancellationSignal()
        calls = []
        signal.add_callback(calls.append)

        signal.cancel()
        signal.cancel()

        assert calls == [signal]

    def test_callback_added_after_cancel_runs_immediately(self):
        signal = CancellationSignal()
        signal.cancel()
        calls = []

        signal.add_callback(calls.append)

        assert calls == [signal]

    def test_removed_callback_is_not_called(self):
        signal = CancellationSignal()
        calls = []
        remove = signal.add_callback(calls.append)

        remove()
        signal.cancel()

        assert calls == []

    def test_raise_if_cancelled(self):
        signal = CancellationSignal()
        signal.raise_if_cancelled()

        signal.cancel()
        with pytest.raises(OperationCancelledError):
            signal.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_non_positive_timeout_rejected(self):
        signal = CancellationSignal()
        with pytest.raises(ValueError):
            signal.with_timeout(0)
        with pytest.raises(ValueError):
            signal.with_timeout(-1)


class TestLinkedSignal:
    """Tests for signals derived with a timer."""

    @pytest.mark.asyncio
    async def test_timer_trips_with_timeout_error(self):
        parent = CancellationSignal()
        with parent.with_timeout(0.01) as linked:
            await asyncio.wait_for(linked.wait(), 1)

            assert linked.timed_out
            assert isinstance(linked.reason, RequestTimeoutError)
            assert linked.reason.timeout == 0.01
        assert not parent.cancelled

    @pytest.mark.asyncio
    async def test_parent_cancellation_propagates(self):
        parent = CancellationSignal()
        with parent.with_timeout(10) as linked:
            parent.cancel()

            assert linked.cancelled
            assert not linked.timed_out
            assert linked.reason is parent.reason

    @pytest.mark.asyncio
    async def test_already_cancelled_parent(self):
        parent = CancellationSignal()
        parent.cancel()

        linked = LinkedSignal(parent, 10)

        assert linked.cancelled
        linked.close()

    @pytest.mark.asyncio
    async def test_close_unlinks_and_stops_timer(self):
        parent = CancellationSignal()
        linked = parent.with_timeout(0.01)
        linked.close()

        await asyncio.sleep(0.05)
        parent.cancel()

        assert not linked.cancelled


class TestSelect:
    """Tests for racing an operation against a signal."""

    @pytest.mark.asyncio
    async def test_operation_wins(self):
        async def operation():
            return 42

        assert await select(operation(), CancellationSignal()) == 42

    @pytest.mark.asyncio
    async def test_operation_exception_propagates(self):
        async def operation():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await select(operation(), CancellationSignal())

    @pytest.mark.asyncio
    async def test_signal_wins(self):
        cancelled = asyncio.Event()

        async def operation():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        signal = CancellationSignal()
        asyncio.get_running_loop().call_later(0.01, signal.cancel)

        with pytest.raises(OperationCancelledError):
            await select(operation(), signal)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_already_cancelled_signal_does_not_start_operation(self):
        started = []

        async def operation():
            started.append(True)

        signal = CancellationSignal()
        signal.cancel()

        with pytest.raises(OperationCancelledError):
            await select(operation(), signal)
        assert started == []

    @pytest.mark.asyncio
    async def test_late_result_is_discarded(self):
        discarded = []

        async def stubborn():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                return "late"

        async def discard(value):
            discarded.append(value)

        signal = CancellationSignal()
        asyncio.get_running_loop().call_later(0.01, signal.cancel)

        with pytest.raises(OperationCancelledError):
            await select(stubborn(), signal, discard=discard)
        assert discarded == ["late"]

    @pytest.mark.asyncio
    async def test_timeout_reason_raised(self):
        parent = CancellationSignal()

        with parent.with_timeout(0.01) as linked:
            with pytest.raises(RequestTimeoutError):
                await select(asyncio.sleep(10), linked)
