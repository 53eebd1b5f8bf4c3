"""
Collaborator contracts: abstract interfaces plus the value types passed across them.
"""

from __future__ import annotations

from .interfaces import Directory, RegistryCoordinator, RewardsCoordinator, StakeRegistry, TokenLedger
from .models import (
    ZERO_ADDRESS,
    OperatorDirectedRewardsSubmission,
    OperatorReward,
    RewardsSubmission,
    ServiceEvent,
    StrategyAndMultiplier,
    StrategyParam,
    normalize_address,
    normalize_operator_id,
)

__all__ = [
    "Directory",
    "RegistryCoordinator",
    "RewardsCoordinator",
    "StakeRegistry",
    "TokenLedger",
    "ZERO_ADDRESS",
    "OperatorDirectedRewardsSubmission",
    "OperatorReward",
    "RewardsSubmission",
    "ServiceEvent",
    "StrategyAndMultiplier",
    "StrategyParam",
    "normalize_address",
    "normalize_operator_id",
]
