from __future__ import annotations

import logging
from typing import Iterable, List

from service_manager.contracts.calls import call_collaborator
from service_manager.contracts.interfaces import RegistryCoordinator, StakeRegistry
from service_manager.contracts.models import normalize_address
from service_manager.membership.bitmap import bitmap_to_quorum_indices

logger = logging.getLogger(__name__)


class RestakeableStrategyQuery:
    """
    Read-only views over the strategies backing quorums.

    Strategies are listed in quorum order, then strategy-index order within a
    quorum. A strategy backing several quorums is listed once per quorum;
    deduplication is left to the caller.
    """

    def __init__(self, *, registry: RegistryCoordinator, stake_registry: StakeRegistry) -> None:
        self._registry = registry
        self._stake_registry = stake_registry

    def restakeable_strategies(self) -> List[str]:
        quorum_count = call_collaborator("registry", "quorum_count", self._registry.quorum_count)
        return self._strategies_for(range(quorum_count))

    def operator_restaked_strategies(self, operator: str) -> List[str]:
        operator = normalize_address(operator)
        quorum_count = call_collaborator("registry", "quorum_count", self._registry.quorum_count)
        if quorum_count == 0:
            return []

        operator_id = call_collaborator("registry", "operator_id", self._registry.operator_id, operator)
        bitmap = call_collaborator("registry", "current_bitmap", self._registry.current_bitmap, operator_id)
        quorums = [q for q in bitmap_to_quorum_indices(bitmap) if q < quorum_count]
        return self._strategies_for(quorums)

    def _strategies_for(self, quorums: Iterable[int]) -> List[str]:
        quorums = list(quorums)
        counts = [
            call_collaborator("stake_registry", "strategy_param_count", self._stake_registry.strategy_param_count, q)
            for q in quorums
        ]

        out: List[str] = []
        for quorum, count in zip(quorums, counts):
            for index in range(count):
                param = call_collaborator(
                    "stake_registry", "strategy_param_at", self._stake_registry.strategy_param_at, quorum, index
                )
                out.append(param.strategy)

        logger.debug("strategies for quorums=%s total=%d", quorums, sum(counts))
        return out
