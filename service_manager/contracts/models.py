"""
Value types exchanged with the external collaborators.

Identifiers:
- Operator / strategy / token addresses are normalized to lowercase,
  `0x`-prefixed, 40 hex digits. With a fixed width and a single case,
  lexicographic order of normalized strings equals numeric order, so sorted
  merges can compare them directly.
- Operator identities (registry primary keys) are normalized the same way at
  32 bytes (64 hex digits).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


_PYDANTIC_V2 = hasattr(BaseModel, "model_validate")

if _PYDANTIC_V2:  # pragma: no cover
    from pydantic import ConfigDict  # type: ignore[attr-defined]
    from pydantic import field_validator  # type: ignore[attr-defined]
else:  # pragma: no cover
    from pydantic import validator  # type: ignore[no-redef]


ADDRESS_HEX_DIGITS = 40
OPERATOR_ID_HEX_DIGITS = 64
ZERO_ADDRESS = "0x" + "0" * ADDRESS_HEX_DIGITS

_HEX_RE = re.compile(r"^[0-9a-f]*$")


def _normalize_hex(value: Any, *, digits: int, kind: str) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0 or value >= 1 << (digits * 4):
            raise ValueError(f"{kind} out of range: {value}")
        return "0x" + format(value, f"0{digits}x")
    s = str(value or "").strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if not s or len(s) > digits or not _HEX_RE.match(s):
        raise ValueError(f"invalid {kind}: {value!r}")
    return "0x" + s.rjust(digits, "0")


def normalize_address(value: Any) -> str:
    """Normalize an address (hex string or int) to `0x` + 40 lowercase hex digits."""
    return _normalize_hex(value, digits=ADDRESS_HEX_DIGITS, kind="address")


def normalize_operator_id(value: Any) -> str:
    """Normalize a 32-byte operator identity to `0x` + 64 lowercase hex digits."""
    return _normalize_hex(value, digits=OPERATOR_ID_HEX_DIGITS, kind="operator id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _FrozenModel(BaseModel):
    if _PYDANTIC_V2:  # pragma: no cover
        model_config = ConfigDict(extra="forbid", frozen=True)
    else:  # pragma: no cover
        class Config:
            extra = "forbid"
            allow_mutation = False

    def to_dict(self) -> Dict[str, Any]:
        if _PYDANTIC_V2:  # pragma: no cover
            return self.model_dump()
        return self.dict()  # pragma: no cover


class StrategyParam(_FrozenModel):
    """One weighted strategy backing a quorum, as stored by the stake registry."""

    strategy: str
    multiplier: int = Field(..., ge=0)

    if _PYDANTIC_V2:  # pragma: no cover
        @field_validator("strategy", mode="before")
        @classmethod
        def _strategy_address(cls, v: Any) -> str:
            return normalize_address(v)
    else:  # pragma: no cover
        @validator("strategy", pre=True)
        def _strategy_address(cls, v: Any) -> str:
            return normalize_address(v)


class StrategyAndMultiplier(StrategyParam):
    pass


class RewardsSubmission(_FrozenModel):
    """
    A rewards submission forwarded to the rewards coordinator.

    `amount` is pulled from the submitter into the service manager's custody
    before forwarding.
    """

    strategies_and_multipliers: List[StrategyAndMultiplier]
    token: str
    amount: int = Field(..., gt=0)
    start_timestamp: int = Field(..., ge=0)
    duration: int = Field(..., gt=0)

    if _PYDANTIC_V2:  # pragma: no cover
        @field_validator("token", mode="before")
        @classmethod
        def _token_address(cls, v: Any) -> str:
            return normalize_address(v)
    else:  # pragma: no cover
        @validator("token", pre=True)
        def _token_address(cls, v: Any) -> str:
            return normalize_address(v)


class OperatorReward(_FrozenModel):
    operator: str
    amount: int = Field(..., gt=0)

    if _PYDANTIC_V2:  # pragma: no cover
        @field_validator("operator", mode="before")
        @classmethod
        def _operator_address(cls, v: Any) -> str:
            return normalize_address(v)
    else:  # pragma: no cover
        @validator("operator", pre=True)
        def _operator_address(cls, v: Any) -> str:
            return normalize_address(v)


class OperatorDirectedRewardsSubmission(_FrozenModel):
    """
    Rewards split explicitly per operator.

    The custody amount is the sum of every `operator_rewards[i].amount`.
    """

    strategies_and_multipliers: List[StrategyAndMultiplier]
    token: str
    operator_rewards: List[OperatorReward]
    start_timestamp: int = Field(..., ge=0)
    duration: int = Field(..., gt=0)
    description: str = ""

    if _PYDANTIC_V2:  # pragma: no cover
        @field_validator("token", mode="before")
        @classmethod
        def _token_address(cls, v: Any) -> str:
            return normalize_address(v)
    else:  # pragma: no cover
        @validator("token", pre=True)
        def _token_address(cls, v: Any) -> str:
            return normalize_address(v)

    @property
    def amount(self) -> int:
        return sum(r.amount for r in self.operator_rewards)


class ServiceEvent(BaseModel):
    """
    Audit notification emitted after a state change or forwarded call.

    Notes:
    - `extra=allow` so subscribers stay forward-compatible with new fields.
    - `name` values are stable identifiers (e.g. "RewardsInitiatorUpdated").
    """

    name: str
    ts: datetime = Field(default_factory=_utcnow)
    invocation_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    if _PYDANTIC_V2:  # pragma: no cover
        model_config = ConfigDict(extra="allow")
    else:  # pragma: no cover
        class Config:
            extra = "allow"
