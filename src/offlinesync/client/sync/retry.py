"""Bounded retry bookkeeping for queued actions.

This module provides:
- FailureVerdict: What the queue does with an action after a failure
- record_failure: Apply one failed attempt to an action
- requeue: Reset the budget of a given-up action for another round

Every failure consumes one unit of the action's retry budget, whatever its
cause: transient network errors, server errors and rejections alike. Once
the budget is spent the action gives up exactly once, following the
configured GiveUpPolicy:

- DEPRIORITIZE (default): demoted to LOW and kept for manual review. Later
  cycles skip it until requeue() resets its budget.
- DROP: removed from the queue.
"""

from __future__ import annotations

import logging
from enum import Enum, auto

from offlinesync.client.api import NETWORK_ERRORS
from offlinesync.client.sync.types import GiveUpPolicy, PendingAction, Priority

logger = logging.getLogger(__name__)


class FailureVerdict(Enum):
    """Outcome of recording a failed attempt."""

    RETRY = auto()  # Budget left, try again next cycle
    GIVE_UP_RETAIN = auto()  # Budget spent, kept at LOW priority
    GIVE_UP_DROP = auto()  # Budget spent, remove from queue


def describe_error(error: BaseException) -> str:
    """Format an error for PendingAction.last_error."""
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


def is_transient(error: BaseException) -> bool:
    """Check if an error is expected to clear up on its own."""
    return isinstance(error, NETWORK_ERRORS)


def record_failure(
    action: PendingAction,
    error: BaseException,
    policy: GiveUpPolicy = GiveUpPolicy.DEPRIORITIZE,
) -> FailureVerdict:
    """Consume one retry for a failed attempt.

    Args:
        action: The action that failed (modified in place).
        error: The failure.
        policy: Effect of spending the last retry.

    Returns:
        The verdict for the queue manager.
    """
    action.last_error = describe_error(error)
    action.retry_count = min(action.retry_count + 1, action.max_retries)

    if not action.is_exhausted:
        logger.info(
            "Action %s failed (%s), attempt %d/%d%s",
            action.id,
            action.last_error,
            action.retry_count,
            action.max_retries,
            "" if is_transient(error) else ", not transient",
        )
        return FailureVerdict.RETRY

    if policy == GiveUpPolicy.DROP:
        logger.warning(
            "Action %s reached max retries (%d), dropping: %s",
            action.id,
            action.max_retries,
            action.last_error,
        )
        return FailureVerdict.GIVE_UP_DROP

    action.priority = Priority.LOW
    logger.warning(
        "Action %s reached max retries (%d), kept at low priority for review: %s",
        action.id,
        action.max_retries,
        action.last_error,
    )
    return FailureVerdict.GIVE_UP_RETAIN


def requeue(action: PendingAction) -> None:
    """Give a retained action a fresh retry budget."""
    action.retry_count = 0
    action.last_error = None
