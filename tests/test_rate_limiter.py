from job_pilot.services.rate_limiter import ActionLimit, RateLimiter


def test_n_plus_one_request_is_rejected():
    limiter = RateLimiter({"send-email": ActionLimit(3, 60)})
    results = [limiter.check(1, "send-email", now=100.0 + i) for i in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert results[2].remaining == 0
    assert results[3].retry_after_seconds == 57


def test_allowed_again_after_window():
    limiter = RateLimiter({"scan-now": ActionLimit(1, 300)})
    assert limiter.check(1, "scan-now", now=0.0).allowed
    assert not limiter.check(1, "scan-now", now=299.0).allowed
    assert limiter.check(1, "scan-now", now=300.5).allowed


def test_limits_are_per_user_and_action():
    limiter = RateLimiter({"send-email": ActionLimit(1, 60)})
    assert limiter.check(1, "send-email", now=0.0).allowed
    assert limiter.check(2, "send-email", now=0.0).allowed
    assert limiter.check(1, "other", now=0.0).allowed
    assert not limiter.check(1, "send-email", now=1.0).allowed


def test_unknown_action_uses_default_limit():
    limiter = RateLimiter({})
    allowed = [limiter.check(1, "anything", now=0.0).allowed for _ in range(31)]
    assert allowed.count(True) == 30


def test_stale_entries_are_swept():
    clock = iter([0.0])
    limiter = RateLimiter({"a": ActionLimit(5, 60)}, clock=lambda: next(clock))
    limiter.check(1, "a", now=1.0)
    limiter.check(2, "a", now=1.0)
    assert len(limiter) == 2
    limiter.check(3, "a", now=1000.0)
    assert len(limiter) == 1
