"""
HTTP middleware: request correlation and rate limiting.
"""

from confportal.api.middleware.rate_limit import RateLimitMiddleware
from confportal.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RateLimitMiddleware", "RequestIdMiddleware"]
