"""Bounded optimistic-concurrency retries around a unit of work."""

from collections.abc import Callable
from typing import TypeVar

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError

from storefront.config import get_settings
from storefront.errors import TransactionConflict

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def run_in_unit_of_work(operation: str, fn: Callable[[], T], attempts: int | None = None) -> T:
    """Run ``fn`` inside a fresh unit of work, retrying when a concurrent writer got there first.

    Each attempt starts from scratch: everything ``fn`` wrote in a failed
    attempt is rolled back with its unit of work. Any other exception
    propagates on the first attempt.
    """
    attempts = attempts or get_settings().checkout_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            with UnitOfWork():
                return fn()
        except ExpectedVersionError as exc:
            logger.warning(
                "Concurrent update conflict",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
            )

    raise TransactionConflict(operation, attempts)
