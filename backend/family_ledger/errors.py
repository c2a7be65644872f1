"""Typed failures raised by the ledger core.

The core never speaks HTTP; the API layer maps each ``code`` to a status in
``family_ledger.main``.
"""
from dataclasses import dataclass, field
from typing import Optional


class LedgerError(Exception):
    """Base ledger error."""

    code = "ledger_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Malformed or missing input. Safe to report field-level detail."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ForbiddenError(LedgerError):
    """Authorization denied. Never reveals whether the resource exists."""

    code = "forbidden"

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFoundError(LedgerError):
    """Resource absent, or shadowed to avoid leaking ownership."""

    code = "not_found"


class ConflictError(LedgerError):
    """Double soft-delete or a lost concurrent-update race."""

    code = "conflict"


@dataclass
class DeliveryWarning:
    """Push delivery failed after the ledger mutation committed.

    Returned alongside a successful result; never raised.
    """

    message: str
    provider_errors: list[str] = field(default_factory=list)
