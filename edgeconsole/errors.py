"""
Error types for the house-edge console core.

Every failure surfaced by the engine, the store, or a durability backend derives
from `EdgeConsoleError`, which carries a machine-friendly `code`, a human
message, and an optional `details` mapping suitable for rendering in a CLI or
forwarding to a UI toast.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class EdgeConsoleError(Exception):
    """Base exception for the console core."""

    code: str = "EDGE_CONSOLE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class TemplateValidationError(EdgeConsoleError):
    """A form/template failed validation; nothing was mutated."""

    code = "VALIDATION_ERROR"

    def __init__(self, field_errors: Mapping[str, str], message: str = "Validation failed") -> None:
        self.field_errors = dict(field_errors)
        super().__init__(message, details={"field_errors": self.field_errors})

    def __str__(self) -> str:
        joined = "; ".join(f"{name}: {error}" for name, error in self.field_errors.items())
        return f"{self.message} ({joined})" if joined else self.message


class UnknownGameError(EdgeConsoleError):
    code = "UNKNOWN_GAME"


class RuleNotFoundError(EdgeConsoleError):
    code = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"House edge rule '{rule_id}' not found", details={"rule_id": rule_id})


class InvariantViolationError(EdgeConsoleError):
    code = "INVARIANT_VIOLATION"


class StoreError(EdgeConsoleError):
    """The durability backend rejected or failed an operation."""

    code = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """The durability backend could not be reached at all."""

    code = "STORE_UNAVAILABLE"


class OperationCancelled(EdgeConsoleError):
    code = "OPERATION_CANCELLED"


class ConfirmationDeclined(EdgeConsoleError):
    code = "CONFIRMATION_DECLINED"


__all__ = [
    "EdgeConsoleError",
    "TemplateValidationError",
    "UnknownGameError",
    "RuleNotFoundError",
    "InvariantViolationError",
    "StoreError",
    "StoreUnavailableError",
    "OperationCancelled",
    "ConfirmationDeclined",
]
