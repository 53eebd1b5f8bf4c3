"""
Caller-facing service manager.

Every gated operation:
- binds an invocation id for its log lines,
- runs its capability check before touching any collaborator,
- mutates its own fields only after all collaborator calls succeeded,
- publishes one audit event per completed effect.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from service_manager import events
from service_manager.access.gate import AccessGate, require
from service_manager.common.config import ServiceManagerConfig
from service_manager.common.logging import bind_invocation_id, log_event
from service_manager.contracts.calls import call_collaborator
from service_manager.contracts.interfaces import (
    Directory,
    RegistryCoordinator,
    RewardsCoordinator,
    StakeRegistry,
    TokenLedger,
)
from service_manager.contracts.models import (
    ZERO_ADDRESS,
    OperatorDirectedRewardsSubmission,
    RewardsSubmission,
    normalize_address,
)
from service_manager.errors import MalformedInputError, MigrationAlreadyCompletedError
from service_manager.events import EventBus
from service_manager.migration.migrator import MigrationPlan, OperatorSetMigrator
from service_manager.rewards.forwarder import RewardsForwarder
from service_manager.strategies.query import RestakeableStrategyQuery

logger = logging.getLogger(__name__)


def _address_arg(value: Any, *, name: str) -> str:
    try:
        return normalize_address(value)
    except ValueError as e:
        raise MalformedInputError(f"{name}: {e}") from e


class ServiceManager:
    def __init__(
        self,
        *,
        address: str,
        owner: str,
        rewards_initiator: str,
        registry_coordinator_address: str,
        directory: Directory,
        registry: RegistryCoordinator,
        stake_registry: StakeRegistry,
        rewards_coordinator: RewardsCoordinator,
        tokens: TokenLedger,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._address = normalize_address(address)
        self._directory = directory
        self._gate = AccessGate(
            owner=owner,
            rewards_initiator=rewards_initiator,
            registry_coordinator=registry_coordinator_address,
        )
        self._forwarder = RewardsForwarder(
            custodian=self._address,
            tokens=tokens,
            rewards_coordinator=rewards_coordinator,
        )
        self._strategies = RestakeableStrategyQuery(registry=registry, stake_registry=stake_registry)
        self._migrator = OperatorSetMigrator(directory=directory, registry=registry)
        self.events = event_bus or EventBus()
        self._migration_completed = False

    @classmethod
    def from_config(cls, config: ServiceManagerConfig, **collaborators: Any) -> "ServiceManager":
        return cls(
            address=config.address,
            owner=config.owner,
            rewards_initiator=config.rewards_initiator,
            registry_coordinator_address=config.registry_coordinator,
            **collaborators,
        )

    # --- accessors ---

    @property
    def address(self) -> str:
        return self._address

    @property
    def directory(self) -> Directory:
        return self._directory

    @property
    def owner(self) -> str:
        return self._gate.owner

    @property
    def rewards_initiator(self) -> str:
        return self._gate.rewards_initiator

    @property
    def migration_completed(self) -> bool:
        return self._migration_completed

    # --- owner operations ---

    def transfer_ownership(self, *, caller: str, new_owner: str) -> None:
        with bind_invocation_id():
            require(self._gate.check_owner(caller), operation="transfer_ownership")
            new_owner = _address_arg(new_owner, name="new_owner")
            if new_owner == ZERO_ADDRESS:
                raise MalformedInputError("new owner is the zero address")
            previous = self._gate.set_owner(new_owner)
            self.events.publish(events.OWNERSHIP_TRANSFERRED, previous_owner=previous, new_owner=new_owner)

    def set_rewards_initiator(self, *, caller: str, new_initiator: str) -> None:
        with bind_invocation_id():
            require(self._gate.check_owner(caller), operation="set_rewards_initiator")
            new_initiator = _address_arg(new_initiator, name="new_initiator")
            previous = self._gate.set_rewards_initiator(new_initiator)
            self.events.publish(
                events.REWARDS_INITIATOR_UPDATED,
                previous_initiator=previous,
                new_initiator=new_initiator,
            )

    def update_metadata_uri(self, *, caller: str, uri: str) -> None:
        with bind_invocation_id():
            require(self._gate.check_owner(caller), operation="update_metadata_uri")
            call_collaborator("directory", "update_metadata", self._directory.update_metadata, uri)
            self.events.publish(events.METADATA_URI_UPDATED, uri=uri)

    def migrate_and_create_operator_sets(self, *, caller: str, block_reference: Optional[int] = None) -> MigrationPlan:
        """
        Mirror every quorum as an operator set and move all current quorum
        members into the operator sets matching their membership bitmap.

        Runs at most once successfully; later calls raise
        `MigrationAlreadyCompletedError`. A failed run leaves the latch unset
        so the owner can retry the whole migration.
        """
        with bind_invocation_id():
            require(self._gate.check_owner(caller), operation="migrate_and_create_operator_sets")
            if self._migration_completed:
                log_event(logger, "migration_rejected", severity="WARNING", reason="already_completed")
                raise MigrationAlreadyCompletedError("operator-set migration already completed")

            plan = self._migrator.migrate_and_create_operator_sets(block_reference=block_reference)
            self._migration_completed = True

            self.events.publish(events.OPERATOR_SETS_CREATED, operator_set_ids=list(plan.operator_set_ids))
            self.events.publish(
                events.OPERATORS_MIGRATED,
                operators=list(plan.operators),
                operator_set_ids=[list(a) for a in plan.assignments],
            )
            return plan

    def migrate_to_operator_sets(
        self,
        *,
        caller: str,
        operator_set_ids: Sequence[Sequence[int]],
        operators: Sequence[str],
    ) -> None:
        """
        Push an explicit operator -> operator-set table, e.g. to move
        operators that joined a quorum after the bulk migration.
        """
        with bind_invocation_id():
            require(self._gate.check_owner(caller), operation="migrate_to_operator_sets")
            self._migrator.migrate_operators(operator_set_ids=operator_set_ids, operators=operators)
            self.events.publish(
                events.OPERATORS_MIGRATED,
                operators=[normalize_address(op) for op in operators],
                operator_set_ids=[list(ids) for ids in operator_set_ids],
            )

    # --- rewards initiator operations ---

    def create_rewards_submission(self, *, caller: str, submissions: Sequence[RewardsSubmission]) -> None:
        with bind_invocation_id():
            require(self._gate.check_rewards_initiator(caller), operation="create_rewards_submission")
            self._forwarder.forward_rewards_submissions(submitter=caller, submissions=submissions)
            self.events.publish(
                events.REWARDS_SUBMISSION_FORWARDED,
                submitter=normalize_address(caller),
                count=len(submissions),
            )

    def create_operator_directed_rewards_submission(
        self, *, caller: str, submissions: Sequence[OperatorDirectedRewardsSubmission]
    ) -> None:
        with bind_invocation_id():
            require(
                self._gate.check_rewards_initiator(caller),
                operation="create_operator_directed_rewards_submission",
            )
            self._forwarder.forward_operator_directed_submissions(submitter=caller, submissions=submissions)
            self.events.publish(
                events.OPERATOR_DIRECTED_REWARDS_SUBMISSION_FORWARDED,
                submitter=normalize_address(caller),
                count=len(submissions),
            )

    # --- registry coordinator operations ---

    def register_operator(self, *, caller: str, operator: str, proof: bytes) -> None:
        with bind_invocation_id():
            require(self._gate.check_registry_coordinator(caller), operation="register_operator")
            operator = _address_arg(operator, name="operator")
            call_collaborator("directory", "register_operator", self._directory.register_operator, operator, proof)
            self.events.publish(events.OPERATOR_REGISTERED, operator=operator)

    def deregister_operator(self, *, caller: str, operator: str) -> None:
        with bind_invocation_id():
            require(self._gate.check_registry_coordinator(caller), operation="deregister_operator")
            operator = _address_arg(operator, name="operator")
            call_collaborator("directory", "deregister_operator", self._directory.deregister_operator, operator)
            self.events.publish(events.OPERATOR_DEREGISTERED, operator=operator)

    # --- views ---

    def plan_migration(self, *, block_reference: Optional[int] = None) -> MigrationPlan:
        return self._migrator.plan(block_reference=block_reference)

    def restakeable_strategies(self) -> List[str]:
        return self._strategies.restakeable_strategies()

    def operator_restaked_strategies(self, operator: str) -> List[str]:
        return self._strategies.operator_restaked_strategies(_address_arg(operator, name="operator"))
