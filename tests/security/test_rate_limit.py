from __future__ import annotations

import pytest

from sitegen.errors import RateLimitExceeded
from sitegen.security.rate_limit import RateLimiter


def test_requests_inside_window_are_rejected(clock) -> None:
    limiter = RateLimiter(5.0, clock=clock)

    first = limiter.admit()
    clock.advance(2.0)
    with pytest.raises(RateLimitExceeded) as excinfo:
        limiter.admit()

    assert excinfo.value.retry_after_seconds == pytest.approx(3.0)
    assert limiter.last_admitted_at == first


def test_rejections_do_not_extend_the_window(clock) -> None:
    limiter = RateLimiter(5.0, clock=clock)
    limiter.admit()

    for _ in range(3):
        clock.advance(1.0)
        with pytest.raises(RateLimitExceeded):
            limiter.admit()
    clock.advance(2.0)

    assert limiter.admit() == clock.now


def test_zero_interval_admits_everything(clock) -> None:
    limiter = RateLimiter(0.0, clock=clock)

    limiter.admit()
    limiter.admit()

    assert limiter.last_admitted_at == clock.now
