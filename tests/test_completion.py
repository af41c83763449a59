"""Tests for the completion context used by synchronous benchmark bodies."""

import asyncio

import pytest

from perfiter.harness.completion import CompletionContext


def test_nothing_outstanding_completes_immediately():
    async def main():
        return await CompletionContext().wait_for_completion()

    assert asyncio.run(main()) is None


def test_spawned_tasks_are_awaited():
    done = []

    async def work(n):
        await asyncio.sleep(0.001 * n)
        done.append(n)

    async def main():
        context = CompletionContext()
        for n in range(3):
            context.spawn(work(n))
        assert context.outstanding == 3
        error = await context.wait_for_completion()
        return error, context.outstanding

    error, outstanding = asyncio.run(main())
    assert error is None
    assert outstanding == 0
    assert sorted(done) == [0, 1, 2]


def test_first_failure_is_reported_and_cleared():
    async def fail(message):
        raise ValueError(message)

    async def main():
        context = CompletionContext()
        context.spawn(fail("first"))
        await asyncio.sleep(0)
        context.spawn(fail("second"))
        first = await context.wait_for_completion()
        again = await context.wait_for_completion()
        return first, again

    first, again = asyncio.run(main())
    assert isinstance(first, ValueError)
    assert str(first) == "first"
    assert again is None


def test_call_soon_records_callback_errors():
    def boom():
        raise KeyError("missing")

    async def main():
        context = CompletionContext()
        context.call_soon(boom)
        return await context.wait_for_completion()

    assert isinstance(asyncio.run(main()), KeyError)


def test_cancelled_task_counts_as_failure():
    async def main():
        context = CompletionContext()
        task = context.spawn(asyncio.sleep(10))
        await asyncio.sleep(0)
        task.cancel()
        return await context.wait_for_completion()

    assert isinstance(asyncio.run(main()), asyncio.CancelledError)


def test_manual_operations():
    context = CompletionContext()
    context.operation_started()
    context.operation_completed(RuntimeError("late"))
    with pytest.raises(RuntimeError, match="no outstanding"):
        context.operation_completed()

    async def main():
        return await context.wait_for_completion()

    assert str(asyncio.run(main())) == "late"
