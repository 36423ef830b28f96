from typing import Optional

import structlog

from url_shortener.exceptions import AllocationExhausted
from url_shortener.services.short_code_strategies import ShortCodeStrategy, RandomShortCodeStrategy
from url_shortener.storage.strategies import URLStoreStrategy

logger = structlog.get_logger()


class UniqueCodeAllocator:
    """
    Finds a short code that is not in use in the store.

    Tries max_attempts candidates at base_length, then widens the code by
    one character per round, up to base_length + extra_lengths. The store
    check is best-effort: two allocators can both see a code as free, so
    the insert's unique constraint has the final say.

    allocate() is blocking (it queries the store) and runs in the threadpool.
    """

    def __init__(
        self,
        store: URLStoreStrategy,
        strategy: Optional[ShortCodeStrategy] = None,
        base_length: int = 6,
        extra_lengths: int = 2,
        max_attempts: int = 10,
    ):
        self.store = store
        self.strategy = strategy or RandomShortCodeStrategy()
        self.base_length = base_length
        self.extra_lengths = extra_lengths
        self.max_attempts = max_attempts

    def allocate(self) -> str:
        for length in range(self.base_length, self.base_length + self.extra_lengths + 1):
            for attempt in range(self.max_attempts):
                candidate = self.strategy.generate(length)
                if not self.store.short_code_exists(candidate):
                    return candidate

            logger.warning(
                "Short code space crowded, widening",
                length=length,
                attempts=self.max_attempts,
            )

        logger.error(
            "Short code allocation exhausted",
            max_length=self.base_length + self.extra_lengths,
            attempts_per_length=self.max_attempts,
        )
        raise AllocationExhausted()
