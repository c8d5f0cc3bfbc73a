"""
HTTP middleware: rate limiting, request size limits and security headers
"""
from .rate_limit import RateLimitMiddleware
from .request_size_limit import RequestSizeLimitMiddleware
from .security import SecurityHeadersMiddleware

__all__ = ["RateLimitMiddleware", "RequestSizeLimitMiddleware", "SecurityHeadersMiddleware"]
