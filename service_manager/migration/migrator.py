"""
Quorum -> operator-set migration.

Algorithm (one invocation):
1. Tell the directory this service now manages operator sets.
2. Read the quorum count.
3. Fold every quorum snapshot, in ascending quorum order, into one sorted,
   duplicate-free list of operator addresses (`merge_sorted_unique`).
4. Once all quorums are folded, decode each operator's current membership
   bitmap into its ascending list of operator-set ids.
5. Create one operator set per quorum id, then migrate every operator in
   global-set order.

Steps 2-4 are pure reads and are exposed on their own as `plan()`.

Failure semantics:
- Any collaborator exception aborts the run as `CollaboratorFailure`.
- Calls already accepted by a collaborator (e.g. step 1) are not rolled back
  here; re-running is the caller's decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from service_manager.common.logging import log_event
from service_manager.contracts.calls import call_collaborator
from service_manager.contracts.interfaces import Directory, RegistryCoordinator
from service_manager.contracts.models import normalize_address
from service_manager.errors import CollaboratorFailure, MalformedInputError
from service_manager.membership.bitmap import MAX_QUORUM_COUNT, bitmap_to_quorum_indices
from service_manager.membership.merge import is_strictly_ascending, merge_sorted_unique

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationPlan:
    """
    Everything the directory needs to mirror quorum membership as operator sets.

    `assignments[i]` belongs to `operators[i]`.
    """

    operator_set_ids: Tuple[int, ...]
    operators: Tuple[str, ...]
    assignments: Tuple[Tuple[int, ...], ...]
    block_reference: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_reference": self.block_reference,
            "operator_set_ids": list(self.operator_set_ids),
            "operators": [
                {"operator": op, "operator_set_ids": list(ids)} for op, ids in zip(self.operators, self.assignments)
            ],
        }


class OperatorSetMigrator:
    def __init__(self, *, directory: Directory, registry: RegistryCoordinator) -> None:
        self._directory = directory
        self._registry = registry

    def _resolve_address(self, operator_id: str) -> str:
        return normalize_address(self._registry.resolve_address(operator_id))

    def quorum_operators(self, quorum: int, block_reference: Optional[int]) -> List[Tuple[str, str]]:
        """(address, identity) pairs of one quorum's snapshot, in snapshot order."""
        identities = call_collaborator(
            "registry", "operator_snapshot", self._registry.operator_snapshot, quorum, block_reference
        )
        return [
            (call_collaborator("registry", "resolve_address", self._resolve_address, identity), identity)
            for identity in identities
        ]

    def collect_operators(self, quorum_count: int, block_reference: Optional[int]) -> Tuple[List[str], Dict[str, str]]:
        """
        Fold every quorum snapshot into the ascending, duplicate-free global
        operator set. Also returns the address -> identity mapping seen along
        the way.
        """
        operators: List[str] = []
        identities: Dict[str, str] = {}
        for quorum in range(quorum_count):
            pairs = self.quorum_operators(quorum, block_reference)
            local = [address for address, _ in pairs]
            if not is_strictly_ascending(local):
                # The merge is only correct over sorted input.
                raise CollaboratorFailure(
                    f"registry snapshot for quorum {quorum} is not sorted by address",
                    collaborator="registry",
                    operation="operator_snapshot",
                )
            identities.update(pairs)
            operators = merge_sorted_unique(operators, local)
            logger.debug("quorum=%d local=%d global=%d", quorum, len(local), len(operators))
        return operators, identities

    def assignments_for(
        self, operators: Sequence[str], identities: Optional[Mapping[str, str]] = None
    ) -> List[List[int]]:
        out: List[List[int]] = []
        for operator in operators:
            operator_id = (identities or {}).get(operator)
            if operator_id is None:
                operator_id = call_collaborator("registry", "operator_id", self._registry.operator_id, operator)
            bitmap = call_collaborator("registry", "current_bitmap", self._registry.current_bitmap, operator_id)
            out.append(bitmap_to_quorum_indices(bitmap))
        return out

    def plan(self, *, block_reference: Optional[int] = None) -> MigrationPlan:
        quorum_count = call_collaborator("registry", "quorum_count", self._registry.quorum_count)
        if quorum_count < 0 or quorum_count > MAX_QUORUM_COUNT:
            raise CollaboratorFailure(
                f"registry reported quorum_count={quorum_count}",
                collaborator="registry",
                operation="quorum_count",
            )
        if block_reference is None and quorum_count > 0:
            block_reference = call_collaborator("registry", "latest_block", self._registry.latest_block)

        operators, identities = self.collect_operators(quorum_count, block_reference)
        assignments = self.assignments_for(operators, identities)
        return MigrationPlan(
            operator_set_ids=tuple(range(quorum_count)),
            operators=tuple(operators),
            assignments=tuple(tuple(a) for a in assignments),
            block_reference=block_reference,
        )

    def migrate_and_create_operator_sets(self, *, block_reference: Optional[int] = None) -> MigrationPlan:
        call_collaborator(
            "directory", "become_operator_set_authority", self._directory.become_operator_set_authority
        )

        plan = self.plan(block_reference=block_reference)

        call_collaborator(
            "directory", "create_operator_sets", self._directory.create_operator_sets, list(plan.operator_set_ids)
        )
        self.migrate_operators(
            operator_set_ids=[list(a) for a in plan.assignments],
            operators=list(plan.operators),
        )
        log_event(
            logger,
            "operator_sets_migrated",
            quorum_count=len(plan.operator_set_ids),
            operator_count=len(plan.operators),
            block_reference=plan.block_reference,
        )
        return plan

    def migrate_operators(self, *, operator_set_ids: Sequence[Sequence[int]], operators: Sequence[str]) -> None:
        """Push an explicit operator -> operator-set table to the directory."""
        if len(operator_set_ids) != len(operators):
            raise MalformedInputError(
                f"operator_set_ids has {len(operator_set_ids)} entries but operators has {len(operators)}"
            )
        try:
            normalized = [normalize_address(op) for op in operators]
        except ValueError as e:
            raise MalformedInputError(str(e)) from e
        call_collaborator(
            "directory",
            "migrate_operators",
            self._directory.migrate_operators,
            normalized,
            [list(ids) for ids in operator_set_ids],
        )
