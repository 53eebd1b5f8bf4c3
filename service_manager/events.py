"""
Audit notifications.

Components publish a `ServiceEvent` after the mutation (or forwarded call) it
describes has completed. Subscribers are plain callables; a subscriber that
raises is logged and skipped, and never undoes the mutation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List

from service_manager.common.logging import get_invocation_id, log_event
from service_manager.contracts.models import ServiceEvent

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[ServiceEvent], None]

OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
REWARDS_INITIATOR_UPDATED = "RewardsInitiatorUpdated"
METADATA_URI_UPDATED = "MetadataURIUpdated"
OPERATOR_REGISTERED = "OperatorRegistered"
OPERATOR_DEREGISTERED = "OperatorDeregistered"
REWARDS_SUBMISSION_FORWARDED = "RewardsSubmissionForwarded"
OPERATOR_DIRECTED_REWARDS_SUBMISSION_FORWARDED = "OperatorDirectedRewardsSubmissionForwarded"
OPERATOR_SETS_CREATED = "OperatorSetsCreated"
OPERATORS_MIGRATED = "OperatorsMigrated"


class EventBus:
    def __init__(self) -> None:
        self._subscribers: List[EventSubscriber] = []

    def subscribe(self, subscriber: EventSubscriber) -> Callable[[], None]:
        """Register `subscriber`; returns a callable that unsubscribes it."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def publish(self, name: str, **data: Any) -> ServiceEvent:
        event = ServiceEvent(name=name, invocation_id=get_invocation_id(), data=data)
        log_event(logger, "service_event", event_name=name, event_data=data)
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                log_event(
                    logger,
                    "event_subscriber_failed",
                    severity="ERROR",
                    event_name=name,
                    error=f"{type(e).__name__}: {e}",
                )
        return event
