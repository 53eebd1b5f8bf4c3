"""
Custody-and-forward for reward submissions.

For each submission in a batch:
- pull `amount` of `token` from the submitter into the service manager,
- raise the rewards coordinator's allowance to `current + amount`,
then forward the whole batch to the rewards coordinator in one call.

All-or-nothing:
- The batch is validated before any token moves.
- Every completed pull / approval is journaled together with the allowance it
  changed. If a later step fails, the journal is unwound in reverse: tokens go
  back to the submitter, the submitter's allowance to the service manager is
  restored, and the coordinator's allowance returns to its prior value.
- Each undo step is attempted even if an earlier one failed. Undo failures are
  logged and attached to the original error as `unwind_failures`; the original
  error is what propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Union

from service_manager.common.logging import log_event
from service_manager.contracts.interfaces import RewardsCoordinator, TokenLedger
from service_manager.contracts.models import (
    OperatorDirectedRewardsSubmission,
    RewardsSubmission,
    normalize_address,
)
from service_manager.errors import (
    CollaboratorFailure,
    InsufficientResourceError,
    MalformedInputError,
    ServiceManagerError,
)

logger = logging.getLogger(__name__)

Submission = Union[RewardsSubmission, OperatorDirectedRewardsSubmission]

STEP_PULL = "pull"
STEP_APPROVE = "approve"


@dataclass(frozen=True)
class _CustodyStep:
    kind: str  # STEP_PULL | STEP_APPROVE
    token: str
    amount: int
    previous_allowance: int  # pull: submitter -> custodian; approve: custodian -> coordinator


@dataclass
class _CustodyJournal:
    """Undo log for one batch, in execution order."""

    steps: List[_CustodyStep] = field(default_factory=list)

    def record(self, kind: str, token: str, amount: int, previous_allowance: int) -> None:
        self.steps.append(_CustodyStep(kind, token, amount, previous_allowance))

    @property
    def pulls(self) -> int:
        return sum(1 for s in self.steps if s.kind == STEP_PULL)


def validate_submissions(submissions: Sequence[Submission]) -> None:
    """Structural checks that must pass before any custody transfer."""
    if not submissions:
        raise MalformedInputError("rewards submission batch is empty")
    for i, sub in enumerate(submissions):
        if not sub.strategies_and_multipliers:
            raise MalformedInputError(f"submission {i}: no strategies")
        strategies = [s.strategy for s in sub.strategies_and_multipliers]
        if any(strategies[k] >= strategies[k + 1] for k in range(len(strategies) - 1)):
            raise MalformedInputError(f"submission {i}: strategies must be strictly ascending")
        if isinstance(sub, OperatorDirectedRewardsSubmission):
            if not sub.operator_rewards:
                raise MalformedInputError(f"submission {i}: no operator rewards")
            operators = [r.operator for r in sub.operator_rewards]
            if any(operators[k] >= operators[k + 1] for k in range(len(operators) - 1)):
                raise MalformedInputError(f"submission {i}: operators must be strictly ascending")


class RewardsForwarder:
    def __init__(self, *, custodian: str, tokens: TokenLedger, rewards_coordinator: RewardsCoordinator) -> None:
        self._custodian = normalize_address(custodian)
        self._tokens = tokens
        self._rewards_coordinator = rewards_coordinator

    def forward_rewards_submissions(self, *, submitter: str, submissions: Sequence[RewardsSubmission]) -> None:
        self._forward(
            submitter=submitter,
            submissions=submissions,
            operation="create_rewards_submission",
            send=self._rewards_coordinator.create_rewards_submission,
        )

    def forward_operator_directed_submissions(
        self, *, submitter: str, submissions: Sequence[OperatorDirectedRewardsSubmission]
    ) -> None:
        self._forward(
            submitter=submitter,
            submissions=submissions,
            operation="create_operator_directed_rewards_submission",
            send=self._rewards_coordinator.create_operator_directed_rewards_submission,
        )

    def _forward(
        self,
        *,
        submitter: str,
        submissions: Sequence[Submission],
        operation: str,
        send: Callable[[Sequence[Submission]], None],
    ) -> None:
        submitter = normalize_address(submitter)
        validate_submissions(submissions)

        journal = _CustodyJournal()
        try:
            for sub in submissions:
                self._take_custody(submitter=submitter, token=sub.token, amount=sub.amount, journal=journal)
            try:
                send(list(submissions))
            except Exception as e:
                raise CollaboratorFailure(
                    f"rewards coordinator rejected {operation}: {type(e).__name__}: {e}",
                    collaborator="rewards_coordinator",
                    operation=operation,
                ) from e
        except ServiceManagerError as e:
            e.unwind_failures = tuple(self._unwind(submitter=submitter, journal=journal))
            log_event(
                logger,
                "rewards_forward_failed",
                severity="WARNING",
                operation=operation,
                submitter=submitter,
                batch_size=len(submissions),
                unwind_failures=len(e.unwind_failures),
                error=f"{type(e).__name__}: {e}",
            )
            raise

        log_event(
            logger,
            "rewards_forwarded",
            operation=operation,
            submitter=submitter,
            batch_size=len(submissions),
            total_by_token=_totals_by_token(submissions),
        )

    def _take_custody(self, *, submitter: str, token: str, amount: int, journal: _CustodyJournal) -> None:
        spender = self._rewards_coordinator.address
        try:
            granted = self._tokens.allowance(token, submitter, self._custodian)
            self._tokens.transfer_from(token, self._custodian, submitter, self._custodian, amount)
        except Exception as e:
            raise InsufficientResourceError(
                f"cannot pull {amount} of {token} from {submitter}: {type(e).__name__}: {e}"
            ) from e
        journal.record(STEP_PULL, token, amount, granted)

        try:
            previous = self._tokens.allowance(token, self._custodian, spender)
            self._tokens.approve(token, self._custodian, spender, previous + amount)
        except Exception as e:
            raise InsufficientResourceError(
                f"cannot raise allowance of {token} for {spender}: {type(e).__name__}: {e}"
            ) from e
        journal.record(STEP_APPROVE, token, amount, previous)

    def _unwind(self, *, submitter: str, journal: _CustodyJournal) -> List[Exception]:
        """Undo every journaled step, newest first. Returns the exceptions raised by failed undo steps."""
        spender = self._rewards_coordinator.address
        failures: List[Exception] = []

        def attempt(step: _CustodyStep, action: str, fn: Callable[..., None], *args: object) -> None:
            try:
                fn(*args)
            except Exception as e:
                failures.append(e)
                log_event(
                    logger,
                    "rewards_custody_unwind_failed",
                    severity="ERROR",
                    submitter=submitter,
                    token=step.token,
                    step=step.kind,
                    action=action,
                    error=f"{type(e).__name__}: {e}",
                )

        tokens = self._tokens
        for step in reversed(journal.steps):
            if step.kind == STEP_APPROVE:
                attempt(step, "approve", tokens.approve, step.token, self._custodian, spender, step.previous_allowance)
                continue
            attempt(step, "transfer", tokens.transfer, step.token, self._custodian, submitter, step.amount)
            # transfer_from consumed part of the submitter's grant; put it back.
            attempt(step, "approve", tokens.approve, step.token, submitter, self._custodian, step.previous_allowance)

        if journal.steps:
            log_event(
                logger,
                "rewards_custody_unwound",
                severity="WARNING",
                submitter=submitter,
                pulls=journal.pulls,
                steps=len(journal.steps),
                failed=len(failures),
            )
        return failures


def _totals_by_token(submissions: Sequence[Submission]) -> dict[str, int]:
    out: dict[str, int] = {}
    for sub in submissions:
        out[sub.token] = out.get(sub.token, 0) + sub.amount
    return out
