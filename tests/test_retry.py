import asyncio

import asyncpg
import pytest

from blog_api.core.retry import (
    QueryExecutor,
    RetryPolicy,
    backoff_delay,
    execute_with_retry,
    is_retryable_error,
)


class Store:
    def __init__(self, reconnect_error=None):
        self.reconnects = 0
        self.reconnect_error = reconnect_error

    async def reconnect(self):
        self.reconnects += 1
        if self.reconnect_error is not None:
            raise self.reconnect_error


class Flaky:
    """Fails with `error` on the first `failures` calls, then returns `value`."""

    def __init__(self, failures, error, value="ok"):
        self.failures = failures
        self.error = error
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


def make_executor(store=None, rand=lambda: 0.0):
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    executor = QueryExecutor(store or Store(), sleep=sleep, rand=rand)
    return executor, delays


@pytest.mark.parametrize(
    "exc",
    [
        RuntimeError("Can't reach database server at db:5432"),
        RuntimeError("Operation timed out"),
        RuntimeError("server closed the connection unexpectedly"),
        RuntimeError("FATAL: terminating connection due to administrator command"),
        RuntimeError("Connection closed"),
        RuntimeError("Connection terminated unexpectedly"),
        ConnectionResetError("reset by peer"),
        asyncio.TimeoutError(),
        asyncpg.exceptions.ConnectionDoesNotExistError("connection was closed in the middle of operation"),
    ],
)
def test_transient_errors_are_retryable(exc):
    assert is_retryable_error(exc) is True


@pytest.mark.parametrize(
    "exc",
    [
        ValueError("invalid input syntax for type uuid"),
        RuntimeError("duplicate key value violates unique constraint"),
        KeyError("slug"),
    ],
)
def test_logical_errors_are_not_retryable(exc):
    assert is_retryable_error(exc) is False


def test_sqlstate_connection_class_is_retryable():
    class Shutdown(Exception):
        sqlstate = "57P01"

    class Broken(Exception):
        sqlstate = "08006"

    class Unique(Exception):
        sqlstate = "23505"

    assert is_retryable_error(Shutdown("x"))
    assert is_retryable_error(Broken("x"))
    assert not is_retryable_error(Unique("x"))


def test_non_retryable_error_runs_once_and_is_reraised_unchanged():
    store = Store()
    executor, delays = make_executor(store)
    error = ValueError("bad column")
    op = Flaky(failures=10, error=error)

    with pytest.raises(ValueError) as caught:
        asyncio.run(executor.run(op))

    assert caught.value is error
    assert op.calls == 1
    assert delays == []
    assert store.reconnects == 0


@pytest.mark.parametrize("failures", [0, 1, 2])
def test_recovers_after_k_transient_failures(failures):
    store = Store()
    executor, delays = make_executor(store)
    op = Flaky(failures=failures, error=RuntimeError("connection closed"), value=42)

    assert asyncio.run(executor.run(op, max_retries=3)) == 42
    assert op.calls == failures + 1
    assert len(delays) == failures
    assert store.reconnects == failures


def test_always_failing_operation_is_invoked_max_retries_times():
    store = Store()
    executor, delays = make_executor(store)
    op = Flaky(failures=100, error=RuntimeError("timed out"))

    with pytest.raises(RuntimeError) as caught:
        asyncio.run(executor.run(op, max_retries=4))

    assert caught.value is op.error
    assert op.calls == 4
    assert len(delays) == 3
    assert store.reconnects == 3


def test_last_attempt_error_is_the_one_raised():
    errors = [RuntimeError("connection closed"), RuntimeError("timed out"), RuntimeError("terminating connection")]
    calls = []

    async def op():
        calls.append(1)
        raise errors[len(calls) - 1]

    executor, _ = make_executor()
    with pytest.raises(RuntimeError) as caught:
        asyncio.run(executor.run(op, max_retries=3))

    assert caught.value is errors[-1]


def test_single_attempt_never_sleeps():
    executor, delays = make_executor()
    op = Flaky(failures=1, error=RuntimeError("connection closed"))

    with pytest.raises(RuntimeError):
        asyncio.run(executor.run(op, max_retries=1))

    assert op.calls == 1
    assert delays == []


def test_max_retries_below_one_is_rejected():
    executor, _ = make_executor()
    with pytest.raises(ValueError):
        asyncio.run(executor.run(Flaky(0, RuntimeError()), max_retries=0))


def test_reconnect_failure_is_swallowed():
    store = Store(reconnect_error=OSError("still down"))
    executor, _ = make_executor(store)
    op = Flaky(failures=2, error=RuntimeError("server closed the connection"), value="done")

    assert asyncio.run(executor.run(op)) == "done"
    assert store.reconnects == 2


def test_store_without_reconnect_is_tolerated():
    executor = QueryExecutor(object(), sleep=lambda s: asyncio.sleep(0))
    op = Flaky(failures=1, error=RuntimeError("connection closed"), value=1)

    assert asyncio.run(executor.run(op)) == 1


@pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4, 8])
def test_backoff_delay_bounds(attempt):
    policy = RetryPolicy()
    floor = min(0.5 * 2**attempt, 3.0)

    assert backoff_delay(attempt, policy, rand=lambda: 0.0) == pytest.approx(floor)
    high = backoff_delay(attempt, policy, rand=lambda: 0.999999)
    assert floor <= high < floor + 0.2


def test_executor_sleeps_with_backoff_schedule():
    executor, delays = make_executor(rand=lambda: 0.5)
    op = Flaky(failures=3, error=RuntimeError("connection closed"))

    asyncio.run(executor.run(op, max_retries=4))

    assert delays == pytest.approx([0.6, 1.1, 2.1])


def test_call_passes_store_first():
    store = Store()
    executor, _ = make_executor(store)

    async def lookup(s, slug, *, published_only=False):
        return (s, slug, published_only)

    assert asyncio.run(executor.call(lookup, "hello", published_only=True)) == (store, "hello", True)


def test_execute_with_retry_defaults_to_three_attempts():
    op = Flaky(failures=100, error=RuntimeError("connection terminated"))

    with pytest.raises(RuntimeError):
        asyncio.run(execute_with_retry(Store(), op))

    assert op.calls == 3
