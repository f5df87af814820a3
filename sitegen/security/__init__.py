from .rate_limit import RateLimiter

__all__ = ["RateLimiter"]
