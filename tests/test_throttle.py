from __future__ import annotations

from holder_lottery.throttle import Deadline, RateLimiter


def test_first_call_never_waits(clock, sleeps):
    limiter = RateLimiter(0.05, clock=clock, sleep=sleeps.append)

    assert limiter.wait() == 0.0
    assert sleeps == []


def test_back_to_back_calls_wait_the_remaining_interval(clock, sleeps):
    limiter = RateLimiter(0.1, clock=clock, sleep=sleeps.append)

    limiter.wait()
    clock.advance(0.04)
    limiter.wait()

    assert len(sleeps) == 1
    assert abs(sleeps[0] - 0.06) < 1e-9


def test_no_wait_once_interval_has_passed(clock, sleeps):
    limiter = RateLimiter(0.1, clock=clock, sleep=sleeps.append)

    limiter.wait()
    clock.advance(0.5)
    limiter.wait()

    assert sleeps == []


def test_deadline_check_records_that_work_was_cut_short(clock):
    deadline = Deadline(5, clock=clock)
    assert not deadline.check()
    assert not deadline.cut_short

    clock.advance(5)
    assert deadline.expired
    assert not deadline.cut_short

    assert deadline.check()
    assert deadline.cut_short


def test_deadline_without_budget_never_expires(clock):
    deadline = Deadline(None, clock=clock)
    clock.advance(10**9)

    assert not deadline.expired
    assert not deadline.check()
    assert not deadline.cut_short
