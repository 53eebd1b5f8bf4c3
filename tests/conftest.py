from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import pytest

from service_manager.collaborators.memory import (
    InMemoryDirectory,
    InMemoryRegistry,
    InMemoryRewardsCoordinator,
    InMemoryStakeRegistry,
    InMemoryTokenLedger,
)
from service_manager.contracts.models import ServiceEvent, StrategyParam, normalize_address
from service_manager.service import ServiceManager


def addr(n: int) -> str:
    return normalize_address(n)


SERVICE_MANAGER = addr(0x5E5E)
OWNER = addr(0x0A11CE)
REWARDS_INITIATOR = addr(0x1417)
REGISTRY_COORDINATOR = addr(0xC00D)
STRANGER = addr(0xBAD)

# X < Y < Z by address order.
OPERATOR_X = addr(0x100)
OPERATOR_Y = addr(0x200)
OPERATOR_Z = addr(0x300)

STRATEGY_A = addr(0xA0)
STRATEGY_B = addr(0xB0)
STRATEGY_C = addr(0xC0)

TOKEN = addr(0x70CE)


@dataclass
class World:
    directory: InMemoryDirectory
    registry: InMemoryRegistry
    stake_registry: InMemoryStakeRegistry
    tokens: InMemoryTokenLedger
    rewards_coordinator: InMemoryRewardsCoordinator
    manager: ServiceManager
    events: List[ServiceEvent]


def build_world(registry: InMemoryRegistry, stake_registry: InMemoryStakeRegistry | None = None) -> World:
    stake_registry = stake_registry or InMemoryStakeRegistry()
    directory = InMemoryDirectory()
    tokens = InMemoryTokenLedger()
    coordinator = InMemoryRewardsCoordinator(tokens=tokens, custodian=SERVICE_MANAGER)
    manager = ServiceManager(
        address=SERVICE_MANAGER,
        owner=OWNER,
        rewards_initiator=REWARDS_INITIATOR,
        registry_coordinator_address=REGISTRY_COORDINATOR,
        directory=directory,
        registry=registry,
        stake_registry=stake_registry,
        rewards_coordinator=coordinator,
        tokens=tokens,
    )
    seen: List[ServiceEvent] = []
    manager.events.subscribe(seen.append)
    return World(
        directory=directory,
        registry=registry,
        stake_registry=stake_registry,
        tokens=tokens,
        rewards_coordinator=coordinator,
        manager=manager,
        events=seen,
    )


@pytest.fixture()
def two_quorum_registry() -> InMemoryRegistry:
    # quorum 0: {X, Y}, quorum 1: {Y, Z}
    return InMemoryRegistry.from_membership({0: [OPERATOR_X, OPERATOR_Y], 1: [OPERATOR_Y, OPERATOR_Z]}, block=42)


@pytest.fixture()
def stake_registry() -> InMemoryStakeRegistry:
    return InMemoryStakeRegistry(
        params={
            0: [StrategyParam(strategy=STRATEGY_A, multiplier=1), StrategyParam(strategy=STRATEGY_B, multiplier=2)],
            1: [StrategyParam(strategy=STRATEGY_B, multiplier=1), StrategyParam(strategy=STRATEGY_C, multiplier=3)],
        }
    )


@pytest.fixture()
def world(two_quorum_registry: InMemoryRegistry, stake_registry: InMemoryStakeRegistry) -> World:
    return build_world(two_quorum_registry, stake_registry)


@pytest.fixture()
def restore_root_logging():
    """Tests that call init_structured_logging must not leak handlers bound to capsys."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
