"""
Domain: error taxonomy.

Every failure the CRM surfaces to a caller is one of these. All carry a
human-readable message; none is retried by the core.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for caller-facing CRM errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(CRMError):
    """Malformed or missing field. The caller can correct the request."""


class InvalidOperation(CRMError):
    """Business rule violation (premature contract edit, wrong installment, ...)."""


class NoChange(CRMError):
    """The requested change leaves the record as it already is."""


class Unauthorized(CRMError):
    """No valid caller identity."""


class Forbidden(CRMError):
    """Caller identity lacks the required role."""


class NotFound(CRMError):
    """No such Lead, Sale or User."""


class Conflict(CRMError):
    """Duplicate email, duplicate sale for a lead, or a stale concurrent write."""


__all__ = [
    "CRMError",
    "Conflict",
    "Forbidden",
    "InvalidInput",
    "InvalidOperation",
    "NoChange",
    "NotFound",
    "Unauthorized",
]
