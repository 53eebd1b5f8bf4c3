"""
Capability checks for privileged operations.

Each check returns an `AuthorizationResult` instead of raising, so callers can
inspect or log the refusal; gated operations call `require(...)` as their very
first statement, before any collaborator read or write.

Roles:
- owner: metadata updates, rewards-initiator rotation, ownership transfer,
  operator-set migration
- rewards_initiator: reward-submission creation
- registry_coordinator: operator registration / deregistration forwarding
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from service_manager.common.logging import log_event
from service_manager.contracts.models import ZERO_ADDRESS, normalize_address
from service_manager.errors import AuthorizationError

logger = logging.getLogger(__name__)

ROLE_OWNER = "owner"
ROLE_REWARDS_INITIATOR = "rewards_initiator"
ROLE_REGISTRY_COORDINATOR = "registry_coordinator"


@dataclass(frozen=True)
class AuthorizationResult:
    allowed: bool
    role: str
    caller: str
    reason: Optional[str] = None


def _normalize_caller(caller: Any) -> Optional[str]:
    try:
        return normalize_address(caller)
    except ValueError:
        return None


class AccessGate:
    """
    Holds the authority identities and answers "may this caller do X?".

    The registry coordinator is fixed at construction; owner and rewards
    initiator are rotated only through the owner-gated façade operations.
    """

    def __init__(self, *, owner: str, rewards_initiator: str, registry_coordinator: str) -> None:
        self._owner = normalize_address(owner)
        self._rewards_initiator = normalize_address(rewards_initiator)
        self._registry_coordinator = normalize_address(registry_coordinator)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def rewards_initiator(self) -> str:
        return self._rewards_initiator

    @property
    def registry_coordinator(self) -> str:
        return self._registry_coordinator

    def _check(self, caller: Any, *, role: str, authority: str) -> AuthorizationResult:
        normalized = _normalize_caller(caller)
        if normalized is None:
            return AuthorizationResult(allowed=False, role=role, caller=str(caller), reason="invalid caller address")
        if authority == ZERO_ADDRESS:
            return AuthorizationResult(allowed=False, role=role, caller=normalized, reason=f"{role} is unset")
        if normalized != authority:
            return AuthorizationResult(allowed=False, role=role, caller=normalized, reason=f"caller is not the {role}")
        return AuthorizationResult(allowed=True, role=role, caller=normalized)

    def check_owner(self, caller: Any) -> AuthorizationResult:
        return self._check(caller, role=ROLE_OWNER, authority=self._owner)

    def check_rewards_initiator(self, caller: Any) -> AuthorizationResult:
        return self._check(caller, role=ROLE_REWARDS_INITIATOR, authority=self._rewards_initiator)

    def check_registry_coordinator(self, caller: Any) -> AuthorizationResult:
        return self._check(caller, role=ROLE_REGISTRY_COORDINATOR, authority=self._registry_coordinator)

    def set_owner(self, new_owner: str) -> str:
        previous, self._owner = self._owner, normalize_address(new_owner)
        return previous

    def set_rewards_initiator(self, new_initiator: str) -> str:
        previous, self._rewards_initiator = self._rewards_initiator, normalize_address(new_initiator)
        return previous


def require(result: AuthorizationResult, *, operation: str) -> None:
    """Fail closed: turn a denied `AuthorizationResult` into `AuthorizationError`."""
    if result.allowed:
        return
    log_event(
        logger,
        "authorization_denied",
        severity="WARNING",
        operation=operation,
        role=result.role,
        caller=result.caller,
        reason=result.reason,
    )
    raise AuthorizationError(f"{operation}: {result.reason}", result=result)
