"""Optimistic retry for read-modify-write on client credit accounts

The operation is re-run from its read step after a version conflict, with
the unit of work rolled back in between so the next attempt sees fresh rows.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import StaleAccountError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.05


class ConcurrentUpdateExhausted(Exception):
    def __init__(self, attempts: int, last_error: StaleAccountError):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def run_with_optimistic_retry(
    uow: UnitOfWork,
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
) -> T:
    """
    Run operation, retrying on StaleAccountError

    operation must perform its own reads and commit; it is called again
    from scratch after each conflict.

    Raises:
        ConcurrentUpdateExhausted: When every attempt hit a conflict
    """
    last_error: StaleAccountError | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except StaleAccountError as e:
            last_error = e
            await uow.rollback()
            logger.warning(
                f"Version conflict on credit account {e.client_id} "
                f"(attempt {attempt}/{max_attempts})"
            )
            if attempt < max_attempts:
                delay = base_delay * (2 ** (attempt - 1))
                await asyncio.sleep(delay + random.uniform(0, delay))

    raise ConcurrentUpdateExhausted(max_attempts, last_error)
