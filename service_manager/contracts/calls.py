from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from service_manager.common.logging import log_event
from service_manager.errors import CollaboratorFailure

logger = logging.getLogger(__name__)

R = TypeVar("R")


def call_collaborator(collaborator: str, operation: str, fn: Callable[..., R], *args: Any) -> R:
    """
    Invoke one collaborator operation; any exception becomes `CollaboratorFailure`
    (original chained) after a single ERROR log line.
    """
    try:
        return fn(*args)
    except Exception as e:
        log_event(
            logger,
            "collaborator_call_failed",
            severity="ERROR",
            collaborator=collaborator,
            operation=operation,
            error=f"{type(e).__name__}: {e}",
        )
        raise CollaboratorFailure(
            f"{collaborator}.{operation} failed: {type(e).__name__}: {e}",
            collaborator=collaborator,
            operation=operation,
        ) from e
