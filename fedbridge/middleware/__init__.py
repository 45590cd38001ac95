"""Middleware package exports."""

from fedbridge.middleware.logging import LoggingMiddleware
from fedbridge.middleware.request_context import RequestContextMiddleware

__all__ = ["LoggingMiddleware", "RequestContextMiddleware"]
