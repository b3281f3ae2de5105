"""Tests for the flow-control retry policy."""

import pytest

from cli.retry import RetryExhaustedError, RetryPolicy, TransferStalledError


class FakeClock:
    """Clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_default_policy_retries_only_tmp_full():
    policy = RetryPolicy()

    assert policy.is_retryable('tmp_full')
    assert not policy.is_retryable('disk_full')
    assert not policy.is_retryable('invalid_session')
    assert not policy.is_retryable(None)


def test_custom_retryable_reasons():
    policy = RetryPolicy(retryable_reasons=frozenset({'tmp_full', 'disk_full'}))
    assert policy.is_retryable('disk_full')


def test_backoff_sleeps_fixed_interval(clock):
    policy = RetryPolicy(interval=2.0, sleep=clock.sleep, clock=clock.time)
    wait = policy.start()

    for _ in range(5):
        wait.backoff('chunk 1')

    assert clock.sleeps == [2.0] * 5
    assert wait.attempts == 5


def test_max_attempts(clock):
    policy = RetryPolicy(interval=1.0, max_attempts=3, sleep=clock.sleep, clock=clock.time)
    wait = policy.start()
    wait.backoff('chunk 0')
    wait.backoff('chunk 0')

    with pytest.raises(RetryExhaustedError) as exc_info:
        wait.backoff('chunk 0')
    assert '3 attempts' in str(exc_info.value)
    assert len(clock.sleeps) == 2


def test_stall_timeout(clock):
    policy = RetryPolicy(interval=1.0, stall_timeout=3.0, sleep=clock.sleep, clock=clock.time)
    wait = policy.start()

    with pytest.raises(TransferStalledError):
        for _ in range(10):
            wait.backoff('chunk 4')
    assert clock.now <= 3.0


def test_each_wait_has_its_own_budget(clock):
    """Progress resets the stall timer: a new wait starts from zero."""
    policy = RetryPolicy(interval=1.0, stall_timeout=2.5, sleep=clock.sleep, clock=clock.time)

    for _ in range(4):
        wait = policy.start()
        wait.backoff('next chunk')
        wait.backoff('next chunk')

    assert clock.now == 8.0


def test_unbounded_policy_keeps_waiting(clock):
    policy = RetryPolicy(interval=0.5, sleep=clock.sleep, clock=clock.time)
    wait = policy.start()

    for _ in range(1000):
        wait.backoff('metadata')

    assert wait.attempts == 1000
