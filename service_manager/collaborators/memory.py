"""
Deterministic in-memory collaborators.

Used by the tests and by `scripts/plan_operator_set_migration.py`. They do no
I/O; every call is recorded on `calls` so callers can assert on ordering, and
any operation name listed in `fail_on` raises `RuntimeError` to simulate a
collaborator failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from service_manager.contracts.interfaces import (
    Directory,
    RegistryCoordinator,
    RewardsCoordinator,
    StakeRegistry,
    TokenLedger,
)
from service_manager.contracts.models import (
    OperatorDirectedRewardsSubmission,
    RewardsSubmission,
    StrategyParam,
    normalize_address,
    normalize_operator_id,
)
from service_manager.membership.bitmap import QuorumBitmap


class _Recorder:
    calls: List[Tuple[str, Tuple[Any, ...]]]
    fail_on: Set[str]

    def _record(self, operation: str, *args: Any) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"simulated failure: {operation}")
        self.calls.append((operation, args))

    def operations(self) -> List[str]:
        return [op for op, _ in self.calls]


@dataclass
class InMemoryDirectory(_Recorder, Directory):
    calls: List[Tuple[str, Tuple[Any, ...]]] = field(default_factory=list)
    fail_on: Set[str] = field(default_factory=set)

    metadata_uri: Optional[str] = None
    registered: Dict[str, bytes] = field(default_factory=dict)
    operator_set_authority: bool = False
    operator_sets: List[int] = field(default_factory=list)
    operator_set_members: Dict[int, List[str]] = field(default_factory=dict)

    def update_metadata(self, uri: str) -> None:
        self._record("update_metadata", uri)
        self.metadata_uri = uri

    def register_operator(self, operator: str, proof: bytes) -> None:
        self._record("register_operator", operator, proof)
        self.registered[operator] = proof

    def deregister_operator(self, operator: str) -> None:
        self._record("deregister_operator", operator)
        if operator not in self.registered:
            raise KeyError(f"operator {operator} is not registered")
        del self.registered[operator]

    def become_operator_set_authority(self) -> None:
        self._record("become_operator_set_authority")
        self.operator_set_authority = True

    def create_operator_sets(self, operator_set_ids: Sequence[int]) -> None:
        self._record("create_operator_sets", list(operator_set_ids))
        for set_id in operator_set_ids:
            if set_id in self.operator_sets:
                raise ValueError(f"operator set {set_id} already exists")
        for set_id in operator_set_ids:
            self.operator_sets.append(set_id)
            self.operator_set_members.setdefault(set_id, [])

    def migrate_operators(self, operators: Sequence[str], assignments: Sequence[Sequence[int]]) -> None:
        self._record("migrate_operators", list(operators), [list(a) for a in assignments])
        for operator, set_ids in zip(operators, assignments):
            for set_id in set_ids:
                if set_id not in self.operator_set_members:
                    raise KeyError(f"operator set {set_id} does not exist")
                members = self.operator_set_members[set_id]
                if operator not in members:
                    members.append(operator)


@dataclass
class InMemoryTokenLedger(TokenLedger):
    balances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    allowances: Dict[Tuple[str, str, str], int] = field(default_factory=dict)
    fail_on: Set[str] = field(default_factory=set)

    def mint(self, token: str, holder: str, amount: int) -> None:
        key = (normalize_address(token), normalize_address(holder))
        self.balances[key] = self.balances.get(key, 0) + int(amount)

    def balance_of(self, token: str, holder: str) -> int:
        return self.balances.get((normalize_address(token), normalize_address(holder)), 0)

    def allowance(self, token: str, holder: str, spender: str) -> int:
        key = (normalize_address(token), normalize_address(holder), normalize_address(spender))
        return self.allowances.get(key, 0)

    def approve(self, token: str, holder: str, spender: str, amount: int) -> None:
        if "approve" in self.fail_on:
            raise RuntimeError("simulated failure: approve")
        if amount < 0:
            raise ValueError("allowance must be >= 0")
        key = (normalize_address(token), normalize_address(holder), normalize_address(spender))
        self.allowances[key] = int(amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if "transfer" in self.fail_on:
            raise RuntimeError("simulated failure: transfer")
        self._move(token, sender, recipient, amount)

    def transfer_from(self, token: str, spender: str, holder: str, recipient: str, amount: int) -> None:
        if "transfer_from" in self.fail_on:
            raise RuntimeError("simulated failure: transfer_from")
        current = self.allowance(token, holder, spender)
        if current < amount:
            raise ValueError(f"allowance {current} < {amount}")
        self._move(token, holder, recipient, amount)
        key = (normalize_address(token), normalize_address(holder), normalize_address(spender))
        self.allowances[key] = current - amount

    def _move(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("amount must be > 0")
        src = (normalize_address(token), normalize_address(sender))
        dst = (normalize_address(token), normalize_address(recipient))
        if self.balances.get(src, 0) < amount:
            raise ValueError(f"balance {self.balances.get(src, 0)} < {amount}")
        self.balances[src] -= amount
        self.balances[dst] = self.balances.get(dst, 0) + amount


@dataclass
class InMemoryRewardsCoordinator(_Recorder, RewardsCoordinator):
    """Pulls each forwarded amount from `submitter_of` custody via its allowance."""

    coordinator_address: str = "0x" + "c" * 40
    tokens: Optional[InMemoryTokenLedger] = None
    calls: List[Tuple[str, Tuple[Any, ...]]] = field(default_factory=list)
    fail_on: Set[str] = field(default_factory=set)
    submissions: List[RewardsSubmission] = field(default_factory=list)
    operator_directed_submissions: List[OperatorDirectedRewardsSubmission] = field(default_factory=list)
    custodian: Optional[str] = None

    @property
    def address(self) -> str:
        return normalize_address(self.coordinator_address)

    def create_rewards_submission(self, submissions: Sequence[RewardsSubmission]) -> None:
        self._record("create_rewards_submission", list(submissions))
        self._pull(submissions)
        self.submissions.extend(submissions)

    def create_operator_directed_rewards_submission(
        self, submissions: Sequence[OperatorDirectedRewardsSubmission]
    ) -> None:
        self._record("create_operator_directed_rewards_submission", list(submissions))
        self._pull(submissions)
        self.operator_directed_submissions.extend(submissions)

    def _pull(self, submissions: Sequence[Any]) -> None:
        if self.tokens is None or self.custodian is None:
            return
        for sub in submissions:
            self.tokens.transfer_from(sub.token, self.address, self.custodian, self.address, sub.amount)


@dataclass
class InMemoryRegistry(RegistryCoordinator):
    """
    Quorum membership keyed by operator identity.

    `quorums[q]` lists identities; snapshots are returned sorted by resolved
    address. Bitmaps are derived from `quorums` unless overridden in
    `bitmap_overrides`.
    """

    quorums: Dict[int, List[str]] = field(default_factory=dict)
    addresses: Dict[str, str] = field(default_factory=dict)
    bitmap_overrides: Dict[str, int] = field(default_factory=dict)
    block: int = 1
    fail_on: Set[str] = field(default_factory=set)
    snapshot_blocks: List[Optional[int]] = field(default_factory=list)

    @classmethod
    def from_membership(
        cls, membership: Mapping[int, Sequence[str]], *, quorum_count: Optional[int] = None, block: int = 1
    ) -> "InMemoryRegistry":
        """
        Build from `{quorum: [operator address, ...]}`; identities are derived
        deterministically from the addresses.
        """
        count = quorum_count if quorum_count is not None else (max(membership) + 1 if membership else 0)
        registry = cls(quorums={q: [] for q in range(count)}, block=block)
        for quorum, operators in membership.items():
            for operator in operators:
                operator_id = registry.add_operator(operator)
                registry.quorums.setdefault(quorum, []).append(operator_id)
        return registry

    def add_operator(self, operator: str) -> str:
        address = normalize_address(operator)
        operator_id = normalize_operator_id(int(address, 16))
        self.addresses[operator_id] = address
        return operator_id

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"simulated failure: {operation}")

    def quorum_count(self) -> int:
        self._maybe_fail("quorum_count")
        return len(self.quorums)

    def latest_block(self) -> int:
        self._maybe_fail("latest_block")
        return self.block

    def operator_snapshot(self, quorum: int, block_reference: Optional[int] = None) -> Sequence[str]:
        self._maybe_fail("operator_snapshot")
        if quorum not in self.quorums:
            raise KeyError(f"quorum {quorum} does not exist")
        self.snapshot_blocks.append(block_reference)
        return sorted(self.quorums[quorum], key=lambda i: self.addresses[i])

    def resolve_address(self, operator_id: str) -> str:
        self._maybe_fail("resolve_address")
        return self.addresses[operator_id]

    def operator_id(self, operator: str) -> str:
        self._maybe_fail("operator_id")
        address = normalize_address(operator)
        for operator_id, known in self.addresses.items():
            if known == address:
                return operator_id
        # Unregistered operators map to an identity with an empty bitmap.
        return normalize_operator_id(0)

    def current_bitmap(self, operator_id: str) -> QuorumBitmap:
        self._maybe_fail("current_bitmap")
        if operator_id in self.bitmap_overrides:
            return QuorumBitmap(self.bitmap_overrides[operator_id])
        return QuorumBitmap.from_indices(q for q, members in self.quorums.items() if operator_id in members)


@dataclass
class InMemoryStakeRegistry(StakeRegistry):
    params: Dict[int, List[StrategyParam]] = field(default_factory=dict)

    def strategy_param_count(self, quorum: int) -> int:
        return len(self.params.get(quorum, []))

    def strategy_param_at(self, quorum: int, index: int) -> StrategyParam:
        return self.params[quorum][index]


def load_fixture(
    fixture: Mapping[str, Any],
) -> Tuple[InMemoryRegistry, InMemoryStakeRegistry]:
    """
    Build registry collaborators from a JSON-ish fixture:

    {
      "block": 123,
      "quorum_count": 2,
      "quorums": {"0": ["0x..", ...], "1": [...]},
      "strategies": {"0": [{"strategy": "0x..", "multiplier": 1}], ...}
    }
    """
    membership = {int(q): list(ops) for q, ops in (fixture.get("quorums") or {}).items()}
    registry = InMemoryRegistry.from_membership(
        membership,
        quorum_count=fixture.get("quorum_count"),
        block=int(fixture.get("block") or 1),
    )
    stake = InMemoryStakeRegistry(
        params={
            int(q): [StrategyParam(**p) for p in params]
            for q, params in (fixture.get("strategies") or {}).items()
        }
    )
    return registry, stake
