"""
Service manager: gated administration, restakeable-strategy views and the
quorum -> operator-set migration.
"""

from __future__ import annotations

from .errors import (
    AuthorizationError,
    CollaboratorFailure,
    InsufficientResourceError,
    MalformedInputError,
    MigrationAlreadyCompletedError,
    ServiceManagerError,
)
from .migration.migrator import MigrationPlan, OperatorSetMigrator
from .service import ServiceManager

__all__ = [
    "ServiceManager",
    "OperatorSetMigrator",
    "MigrationPlan",
    "ServiceManagerError",
    "AuthorizationError",
    "MalformedInputError",
    "InsufficientResourceError",
    "CollaboratorFailure",
    "MigrationAlreadyCompletedError",
]
