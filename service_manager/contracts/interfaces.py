from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from service_manager.contracts.models import (
    OperatorDirectedRewardsSubmission,
    RewardsSubmission,
    StrategyParam,
)
from service_manager.membership.bitmap import QuorumBitmap


class Directory(ABC):
    """
    The operator directory the service manager registers with.

    Contract:
    - Operators are addressed by their normalized address.
    - `migrate_operators` receives parallel sequences: `assignments[i]` is the
      ascending list of operator-set ids for `operators[i]`.
    """

    @abstractmethod
    def update_metadata(self, uri: str) -> None: ...

    @abstractmethod
    def register_operator(self, operator: str, proof: bytes) -> None: ...

    @abstractmethod
    def deregister_operator(self, operator: str) -> None: ...

    @abstractmethod
    def become_operator_set_authority(self) -> None: ...

    @abstractmethod
    def create_operator_sets(self, operator_set_ids: Sequence[int]) -> None: ...

    @abstractmethod
    def migrate_operators(self, operators: Sequence[str], assignments: Sequence[Sequence[int]]) -> None: ...


class RewardsCoordinator(ABC):
    """
    Downstream rewards coordinator.

    Pulls the forwarded amounts out of the service manager's custody using the
    allowance granted to it on the token ledger.
    """

    @property
    @abstractmethod
    def address(self) -> str: ...

    @abstractmethod
    def create_rewards_submission(self, submissions: Sequence[RewardsSubmission]) -> None: ...

    @abstractmethod
    def create_operator_directed_rewards_submission(
        self, submissions: Sequence[OperatorDirectedRewardsSubmission]
    ) -> None: ...


class TokenLedger(ABC):
    """
    Fungible-token primitives (balances + allowances), keyed by token address.

    Failures (insufficient balance or allowance) are raised as exceptions.
    """

    @abstractmethod
    def balance_of(self, token: str, holder: str) -> int: ...

    @abstractmethod
    def allowance(self, token: str, holder: str, spender: str) -> int: ...

    @abstractmethod
    def approve(self, token: str, holder: str, spender: str, amount: int) -> None: ...

    @abstractmethod
    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None: ...

    @abstractmethod
    def transfer_from(self, token: str, spender: str, holder: str, recipient: str, amount: int) -> None: ...


class RegistryCoordinator(ABC):
    """
    Read-only view of quorum membership.

    Contract:
    - `operator_snapshot` returns identities whose resolved addresses are in
      ascending address order (the migration relies on this).
    - `block_reference=None` means "latest".
    """

    @abstractmethod
    def quorum_count(self) -> int: ...

    @abstractmethod
    def latest_block(self) -> int: ...

    @abstractmethod
    def operator_snapshot(self, quorum: int, block_reference: Optional[int] = None) -> Sequence[str]: ...

    @abstractmethod
    def resolve_address(self, operator_id: str) -> str: ...

    @abstractmethod
    def operator_id(self, operator: str) -> str: ...

    @abstractmethod
    def current_bitmap(self, operator_id: str) -> QuorumBitmap: ...


class StakeRegistry(ABC):
    @abstractmethod
    def strategy_param_count(self, quorum: int) -> int: ...

    @abstractmethod
    def strategy_param_at(self, quorum: int, index: int) -> StrategyParam: ...
