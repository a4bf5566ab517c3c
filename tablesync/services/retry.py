"""Bounded retry as an explicit state machine."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

from tablesync.exceptions import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptState(StrEnum):
    """Where a retried operation currently stands."""

    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_FINAL = "failed_final"


class RetryStateMachine:
    """Tracks attempts of one operation with at most ``max_retries`` retries.

    Transitions (the machine starts with no state):
    start -> ATTEMPTING on the first attempt;
    ATTEMPTING -> SUCCEEDED on success;
    ATTEMPTING -> FAILED_RETRYABLE on a retryable failure with retries left;
    ATTEMPTING -> FAILED_FINAL on any other failure;
    FAILED_RETRYABLE -> ATTEMPTING when the next attempt starts.
    """

    def __init__(self, max_retries: int = 1) -> None:
        if max_retries < 0:
            msg = f"max_retries must be >= 0, got {max_retries}"
            raise ValueError(msg)
        self.max_retries = max_retries
        self.attempts = 0
        self.state: AttemptState | None = None

    @property
    def done(self) -> bool:
        return self.state in (AttemptState.SUCCEEDED, AttemptState.FAILED_FINAL)

    def begin(self) -> None:
        if self.state not in (None, AttemptState.FAILED_RETRYABLE):
            msg = f"Cannot start an attempt from state {self.state}"
            raise RuntimeError(msg)
        self.attempts += 1
        self.state = AttemptState.ATTEMPTING

    def succeed(self) -> None:
        self._require_attempting()
        self.state = AttemptState.SUCCEEDED

    def fail(self, *, retryable: bool) -> AttemptState:
        self._require_attempting()
        if retryable and self.attempts <= self.max_retries:
            self.state = AttemptState.FAILED_RETRYABLE
        else:
            self.state = AttemptState.FAILED_FINAL
        return self.state

    def _require_attempting(self) -> None:
        if self.state is not AttemptState.ATTEMPTING:
            msg = f"No attempt in progress (state {self.state})"
            raise RuntimeError(msg)


def run_with_retry(
    operation: Callable[[], T],
    *,
    max_retries: int = 1,
    retryable: tuple[type[BaseException], ...] = (TransportError,),
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or fails for the final time.

    The last failure propagates unchanged.
    """
    machine = RetryStateMachine(max_retries)
    while True:
        machine.begin()
        try:
            result = operation()
        except retryable as exc:
            if machine.fail(retryable=True) is AttemptState.FAILED_FINAL:
                raise
            logger.warning(
                "%s failed on attempt %d, retrying: %s", description, machine.attempts, exc
            )
            continue
        except BaseException:
            machine.fail(retryable=False)
            raise
        machine.succeed()
        return result
