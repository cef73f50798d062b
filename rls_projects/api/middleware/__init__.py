"""Middleware package."""

from rls_projects.api.middleware.logging import LoggingMiddleware
from rls_projects.api.middleware.request_id import RequestIdMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestIdMiddleware",
]
