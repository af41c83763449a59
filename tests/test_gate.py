"""Tests for the process-wide execution gate."""

import asyncio
import threading
import time

import pytest

from perfiter.harness.gate import GLOBAL_GATE, ExecutionGate


class TestExecutionGate:
    def test_uncontended_acquire_and_release(self):
        gate = ExecutionGate()

        async def main():
            async with gate:
                assert gate.locked
            assert not gate.locked

        asyncio.run(main())

    def test_release_without_hold_raises(self):
        with pytest.raises(RuntimeError):
            ExecutionGate().release()

    def test_tasks_run_one_at_a_time_in_fifo_order(self):
        gate = ExecutionGate()
        active = 0
        peak = 0
        order = []

        async def worker(name):
            nonlocal active, peak
            async with gate:
                active += 1
                peak = max(peak, active)
                order.append(name)
                await asyncio.sleep(0.01)
                active -= 1

        async def main():
            await asyncio.gather(*(worker(i) for i in range(5)))

        asyncio.run(main())
        assert peak == 1
        assert order == [0, 1, 2, 3, 4]

    def test_cancelled_waiter_does_not_take_the_permit(self):
        gate = ExecutionGate()

        async def main():
            await gate.acquire()
            waiter = asyncio.ensure_future(gate.acquire())
            await asyncio.sleep(0)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
            gate.release()
            assert not gate.locked
            await asyncio.wait_for(gate.acquire(), timeout=1)
            gate.release()

        asyncio.run(main())

    def test_permit_passes_on_when_granted_waiter_is_cancelled(self):
        gate = ExecutionGate()

        async def main():
            await gate.acquire()
            first = asyncio.ensure_future(gate.acquire())
            second = asyncio.ensure_future(gate.acquire())
            await asyncio.sleep(0)
            gate.release()  # hands the permit to ``first``
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first
            await asyncio.wait_for(second, timeout=1)
            assert gate.locked
            gate.release()
            assert not gate.locked

        asyncio.run(main())

    def test_threads_with_separate_loops_are_serialized(self):
        gate = ExecutionGate()
        lock = threading.Lock()
        active = 0
        peak = 0

        async def body():
            nonlocal active, peak
            async with gate:
                with lock:
                    active += 1
                    peak = max(peak, active)
                await asyncio.sleep(0.005)
                time.sleep(0.005)
                with lock:
                    active -= 1

        threads = [threading.Thread(target=asyncio.run, args=(body(),)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        assert peak == 1
        assert not gate.locked


def test_global_gate_is_shared():
    from perfiter.harness import invoker

    assert invoker.GLOBAL_GATE is GLOBAL_GATE
