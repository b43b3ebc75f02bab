from __future__ import annotations

from decimal import Decimal
from typing import Any

from .money import ZERO, to_decimal, to_amount


class DomainError(Exception):
    """Base for every failure a core operation can report."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self), "kind": type(self).__name__}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem. Rejected before any state mutation."""


class NotFoundError(DomainError):
    """404-level: the referenced document does not exist."""

    status_code = 404


class StateConflictError(DomainError):
    """409-level: legal input that conflicts with current document state."""

    status_code = 409


class ConcurrencyConflictError(DomainError):
    """409-level: optimistic version check failed; reload and retry."""

    status_code = 409

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retry"] = True
        return body


# =============================================================================
# BOUNDARY PARSERS
# =============================================================================

def json_object(body: Any) -> dict:
    """Request body as a dict. A missing body is empty; arrays and scalars are rejected."""
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_amount(value: Any, field: str, *, allow_zero: bool = True) -> Decimal:
    """
    Strict money parse for amounts the caller must get right
    (starting balance, payments, counted cash).
    """
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    amount = to_decimal(value, default=None)
    if amount is None:
        raise ValidationError(f"{field} must be a number")
    if amount < ZERO:
        raise ValidationError(f"{field} cannot be negative")
    if not allow_zero and amount == ZERO:
        raise ValidationError(f"{field} must be positive")
    return amount


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Whole, non-negative quantity. Rejects floats like 1.5 and strings like '2e3'."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        qty = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")
    if qty < 0:
        raise ValidationError(f"{field} cannot be negative")
    return qty


def parse_choice(value: Any, field: str, choices) -> str:
    text = str(value).strip().lower() if value is not None else ""
    if text not in choices:
        raise ValidationError(f"Invalid {field}. Must be one of: {', '.join(sorted(choices))}")
    return text


def lenient_amount(value: Any) -> Decimal:
    """Optional money (shipping, voucher): missing/bad/negative -> 0."""
    return to_amount(value)


def parse_expected_version(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("expected_version must be an integer")


def parse_id(value: Any, field: str) -> int:
    """Positive integer id (branch_id and the like)."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if parsed <= 0:
        raise ValidationError(f"{field} must be positive")
    return parsed
