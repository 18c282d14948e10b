"""Adaptive batch size controller.

Holds the number of operations the commit driver submits per attempt.
Oversize failures halve it; every successful commit grows it by half again,
capped at the store's hard per-batch limit.
"""

from __future__ import annotations

import math

from .exceptions import BatchSizeCollapsedError
from .exceptions import BatcherConfigurationError

# Firestore's hard limit on writes per atomic batch
MAX_BATCH_SIZE = 500

DEFAULT_GROWTH_FACTOR = 1.5
DEFAULT_SHRINK_DIVISOR = 2


class BatchSizeController:
    """Tracks the current attempt size for atomic batch commits.

    Attributes:
        max_size: Upper bound, and the initial size.
        growth_factor: Multiplier applied after a successful commit.
        shrink_divisor: Divisor applied after an oversize failure.
        current_size: Number of operations to submit in the next attempt.
        successes: Lifetime count of successful commits reported.
        oversize_failures: Lifetime count of oversize failures reported.
    """

    def __init__(
        self,
        max_size: int = MAX_BATCH_SIZE,
        growth_factor: float = DEFAULT_GROWTH_FACTOR,
        shrink_divisor: float = DEFAULT_SHRINK_DIVISOR,
    ):
        if not 1 <= max_size <= MAX_BATCH_SIZE:
            raise BatcherConfigurationError("max_size", f"must be between 1 and {MAX_BATCH_SIZE}", max_size)
        if growth_factor < 1:
            raise BatcherConfigurationError("growth_factor", "must be at least 1", growth_factor)
        if shrink_divisor <= 1:
            raise BatcherConfigurationError("shrink_divisor", "must be greater than 1", shrink_divisor)

        self.max_size = max_size
        self.growth_factor = growth_factor
        self.shrink_divisor = shrink_divisor
        self.current_size = max_size
        self.successes = 0
        self.oversize_failures = 0

    def on_commit_success(self, committed_count: int) -> int:
        """Grow the attempt size after a successful commit.

        Growth does not depend on ``committed_count``: a short final chunk
        was limited by the queue length, not by the transaction size.
        """
        self.successes += 1
        self.current_size = min(math.floor(self.current_size * self.growth_factor), self.max_size)
        return self.current_size

    def on_oversize_failure(self) -> int:
        """Shrink the attempt size after a transaction-too-large failure.

        Raises:
            BatchSizeCollapsedError: If the new size would be 0.
        """
        self.oversize_failures += 1
        new_size = math.floor(self.current_size / self.shrink_divisor)
        if new_size < 1:
            self.current_size = 0
            raise BatchSizeCollapsedError()
        self.current_size = new_size
        return self.current_size

    def reset(self) -> None:
        """Restore the initial size."""
        self.current_size = self.max_size

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(current_size={self.current_size}, max_size={self.max_size}, "
            f"growth_factor={self.growth_factor}, shrink_divisor={self.shrink_divisor})"
        )
