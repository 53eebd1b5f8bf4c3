"""
Configuration for the service manager.

All settings are loaded from environment variables at call time (never at
import time). Addresses are normalized on load.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from service_manager.common.logging import init_structured_logging
from service_manager.contracts.models import ZERO_ADDRESS, normalize_address

DEFAULT_SERVICE_NAME = "service-manager"

ENV_SERVICE_MANAGER_ADDRESS = "SERVICE_MANAGER_ADDRESS"
ENV_OWNER = "SERVICE_MANAGER_OWNER"
ENV_REWARDS_INITIATOR = "REWARDS_INITIATOR"
ENV_REGISTRY_COORDINATOR = "REGISTRY_COORDINATOR"


def _env_address(env: Mapping[str, str], name: str) -> str:
    raw = str(env.get(name) or "").strip()
    if not raw:
        return ZERO_ADDRESS
    return normalize_address(raw)


@dataclass(frozen=True)
class ServiceManagerConfig:
    address: str
    owner: str
    rewards_initiator: str
    registry_coordinator: str
    service_name: str = DEFAULT_SERVICE_NAME
    env: str = "unknown"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceManagerConfig":
        e = os.environ if env is None else env
        return cls(
            address=_env_address(e, ENV_SERVICE_MANAGER_ADDRESS),
            owner=_env_address(e, ENV_OWNER),
            rewards_initiator=_env_address(e, ENV_REWARDS_INITIATOR),
            registry_coordinator=_env_address(e, ENV_REGISTRY_COORDINATOR),
            service_name=str(e.get("SERVICE_NAME") or DEFAULT_SERVICE_NAME).strip(),
            env=str(e.get("ENV") or "unknown").strip(),
            log_level=str(e.get("LOG_LEVEL") or "INFO").strip().upper(),
        )

    def validate(self) -> List[str]:
        """
        Validate critical configuration.
        Returns list of error messages (empty if valid).
        """
        errors = []

        if self.address == ZERO_ADDRESS:
            errors.append(f"{ENV_SERVICE_MANAGER_ADDRESS} not set")

        if self.owner == ZERO_ADDRESS:
            errors.append(f"{ENV_OWNER} not set (no owner can administer the service)")

        if self.registry_coordinator == ZERO_ADDRESS:
            errors.append(f"{ENV_REGISTRY_COORDINATOR} not set")

        # An unset rewards initiator is legal: reward submissions are simply refused.

        if self.address != ZERO_ADDRESS and self.address in (self.owner, self.registry_coordinator):
            errors.append("service manager address must differ from owner and registry coordinator")

        return errors


def validate_config(env: Optional[Mapping[str, str]] = None) -> List[str]:
    try:
        config = ServiceManagerConfig.from_env(env)
    except ValueError as e:
        return [str(e)]
    return config.validate()


def configure_logging(config: ServiceManagerConfig, *, level: str | None = None) -> None:
    """JSON logging tagged with the configured service name and environment."""
    init_structured_logging(service=config.service_name, env=config.env, level=level or config.log_level)
