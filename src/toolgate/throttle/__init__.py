"""Admission control for rate-limited backends."""

from toolgate.throttle.rate_limiter import RateLimiter, RequestRecord

__all__ = ["RateLimiter", "RequestRecord"]
