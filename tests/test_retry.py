"""Tests for the per-request retry policy."""
import pytest

from fc_archive.errors import ClientError, TransientError
from fc_archive.retry import capped_backoff, retry_with_skip


class _Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_capped_backoff_doubles_then_caps():
    delays = [capped_backoff(i) for i in range(8)]

    assert delays[:5] == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert delays[5:] == [30.0, 30.0, 30.0]
    assert all(a <= b for a, b in zip(delays, delays[1:]))


def test_client_error_aborts_after_one_attempt(sleeps):
    fn = _Flaky([ClientError("bad request", status=400)] * 5)

    with pytest.raises(ClientError):
        retry_with_skip(fn, times=5)

    assert fn.calls == 1
    assert sleeps == []


def test_transient_error_is_retried_until_success(sleeps):
    fn = _Flaky([TransientError("503", status=503), TransientError("reset")])

    assert retry_with_skip(fn, times=5) == "ok"
    assert fn.calls == 3
    assert sleeps == [1.0, 2.0]


def test_exhausted_attempts_raise_last_error(sleeps):
    errors = [TransientError(f"boom {i}") for i in range(5)]
    fn = _Flaky(errors)

    with pytest.raises(TransientError, match="boom 4"):
        retry_with_skip(fn, times=5)

    assert fn.calls == 5
    # no wait after the final attempt
    assert sleeps == [1.0, 2.0, 4.0, 8.0]


def test_custom_backoff_is_used(sleeps):
    fn = _Flaky([TransientError("x")] * 3)

    with pytest.raises(TransientError):
        retry_with_skip(fn, times=3, backoff=lambda i: capped_backoff(i, base=10, cap=15))

    assert sleeps == [10, 15]


def test_unrelated_exceptions_propagate_immediately():
    fn = _Flaky([KeyError("bug")])

    with pytest.raises(KeyError):
        retry_with_skip(fn, times=5)
    assert fn.calls == 1


def test_times_must_be_positive():
    with pytest.raises(ValueError):
        retry_with_skip(lambda: 1, times=0)
