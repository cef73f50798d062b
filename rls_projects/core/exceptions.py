"""
Access-control error taxonomy.

Authorization outcomes (NoUserInScope, NotFound) are recovered by callers
as "not authenticated" / "not present". ContextSetupFailure signals a
programming or configuration defect and must never be turned into an
empty result.
"""

from typing import Any


class AccessError(Exception):
    """Base class for scoped data access errors."""

    code = "access_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__doc__ or self.code)


class ContextError(AccessError):
    """The access context could not be established."""

    code = "context_error"


class NoUserInScope(ContextError):
    """No user in scope."""

    code = "no_user_in_scope"


class ContextSetupFailure(ContextError):
    """Session parameters or principal switch could not be applied."""

    code = "context_setup_failure"


class NoTenantInScope(AccessError):
    """No company in scope."""

    code = "no_tenant_in_scope"


class NotFound(AccessError):
    """Resource not found."""

    code = "not_found"


class ValidationFailure(AccessError):
    """
    Business-rule violation on create/update.

    errors maps a field name to its messages, e.g.
    {"name": ["String should have at least 2 characters"]}.
    """

    code = "validation_failure"

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__(f"Invalid attributes: {', '.join(sorted(errors))}")

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationFailure":
        """Build from a pydantic ValidationError or FastAPI RequestValidationError."""
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            loc = tuple(error["loc"])
            if loc[:1] == ("body",):
                loc = loc[1:]
            field = ".".join(str(part) for part in loc) or "__root__"
            errors.setdefault(field, []).append(error["msg"])
        return cls(errors)
