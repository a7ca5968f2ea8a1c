"""Typed failures of a reconciliation command.

Every failure aborts the whole command: nothing is retried and no partial
report is rendered. The CLI catches :class:`ReconcilerError` at the top level.
"""

from __future__ import annotations


class ReconcilerError(RuntimeError):
    """Base error for everything that aborts a command."""


class AuthenticationError(ReconcilerError):
    """Raised when the caller identity check fails (bad or missing credentials)."""


class ServiceError(ReconcilerError):
    """Raised when a provider API call fails.

    ``operation`` is the boto3 operation name, ``message`` the provider message.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class DataAssumptionViolation(ReconcilerError):
    """Raised when provider data breaks an invariant the cost model relies on."""


class SingletonMappingError(DataAssumptionViolation):
    """Raised when a mapping expected to hold exactly one entry does not."""

    def __init__(self, path: str, size: int) -> None:
        super().__init__(f"expected exactly one entry under '{path}', found {size}")
        self.path = path
        self.size = size


__all__ = [
    "AuthenticationError",
    "DataAssumptionViolation",
    "ReconcilerError",
    "ServiceError",
    "SingletonMappingError",
]
