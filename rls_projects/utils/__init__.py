"""Utility functions."""

from rls_projects.utils.context import (
    configure_logging,
    get_request_id,
    reset_request_id,
    set_request_id,
)

__all__ = [
    "configure_logging",
    "get_request_id",
    "reset_request_id",
    "set_request_id",
]
