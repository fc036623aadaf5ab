from __future__ import annotations


class DomainError(Exception):
    """Base class for errors raised by the application layer."""


class UnknownPolicyField(DomainError):
    """Raised when an update names a field that is not a `PolicyField`."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Unknown field: {field_name}")
        self.field_name = field_name


class InvalidAmount(DomainError):
    """Raised when an update amount cannot be read as a finite number."""

    def __init__(self, raw_amount: str) -> None:
        super().__init__("Amount must be a number.")
        self.raw_amount = raw_amount
