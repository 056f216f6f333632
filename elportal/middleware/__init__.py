"""Middleware components for request processing."""

from elportal.middleware.cors import CORSHeadersMiddleware, CORSPolicy
from elportal.middleware.logging import LoggingMiddleware
from elportal.middleware.rate_limit import RateLimiter

__all__ = [
    "CORSHeadersMiddleware",
    "CORSPolicy",
    "LoggingMiddleware",
    "RateLimiter",
]
