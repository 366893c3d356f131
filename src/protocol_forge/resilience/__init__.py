"""
Resilience module - rate limiting of generated tool calls.
"""

from protocol_forge.resilience.rate_limiter import FixedWindowRateLimiter, RateDecision

__all__ = [
    "FixedWindowRateLimiter",
    "RateDecision",
]
