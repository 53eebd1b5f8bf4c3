from __future__ import annotations

from typing import Sequence


class ServiceManagerError(RuntimeError):
    """
    Base error for every rejected service-manager invocation.

    `unwind_failures` lists exceptions from compensating steps that failed
    while undoing the invocation; empty when the rollback was complete.
    """

    unwind_failures: Sequence[Exception] = ()


class AuthorizationError(ServiceManagerError):
    """
    Raised when the caller fails the capability check guarding an operation.

    Carries the denied `AuthorizationResult` so callers can report the role.
    """

    def __init__(self, message: str, *, result: object | None = None) -> None:
        super().__init__(message)
        self.result = result


class MalformedInputError(ServiceManagerError, ValueError):
    """Raised for structurally invalid input (mismatched batch lengths, empty batches, zero owner)."""


class InsufficientResourceError(ServiceManagerError):
    """Raised when a token transfer or allowance update fails while taking custody."""


class CollaboratorFailure(ServiceManagerError):
    """
    Raised when an external collaborator call fails.

    The original exception is chained (`raise ... from exc`).
    """

    def __init__(self, message: str, *, collaborator: str, operation: str) -> None:
        super().__init__(message)
        self.collaborator = collaborator
        self.operation = operation


class MigrationAlreadyCompletedError(ServiceManagerError):
    """Raised when the quorum -> operator-set migration is triggered after it already succeeded."""
