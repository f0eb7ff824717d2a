"""
ErrorHistory - Bounded circular buffer of recent cross-track error samples.

The controller can record every CTE sample it receives into this buffer. The
buffer is informational only: its contents never feed the PID output, the
integral term stays an unbounded running sum.
"""

from typing import List


DEFAULT_HISTORY_SIZE = 50


class ErrorHistory:
    """
    Fixed-capacity FIFO of error samples with a running sum.

    New samples overwrite the oldest once the buffer is full. Unlike a
    prefilled sliding window, empty slots do not count towards the sum or
    the average.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_SIZE):
        """
        Initialize the error history.

        Args:
            capacity: Maximum number of samples kept

        Raises:
            ValueError: If capacity is not positive
        """
        if capacity <= 0:
            raise ValueError("History capacity must be positive")

        self._capacity: int = capacity
        self._samples: List[float] = [0.0] * capacity
        self._head: int = 0  # Slot the next sample is written to
        self._count: int = 0
        self._sum: float = 0.0

    def __len__(self) -> int:
        return self._count

    def push(self, cte: float) -> None:
        """
        Append a sample, evicting the oldest one when full.

        Args:
            cte: Cross-track error sample
        """
        if self._count == self._capacity:
            self._sum -= self._samples[self._head]
        else:
            self._count += 1

        self._samples[self._head] = cte
        self._sum += cte

        self._head += 1
        if self._head >= self._capacity:
            self._head = 0

    def oldest(self) -> float:
        """Get the oldest sample still in the buffer."""
        if self._count == 0:
            raise IndexError("Error history is empty")
        return self._samples[self._tail_index()]

    def newest(self) -> float:
        """Get the most recently pushed sample."""
        if self._count == 0:
            raise IndexError("Error history is empty")
        return self._samples[self._head - 1]

    def total(self) -> float:
        """Sum of the samples currently held."""
        return self._sum

    def average(self) -> float:
        """Mean of the samples currently held (0.0 when empty)."""
        if self._count == 0:
            return 0.0
        return self._sum / self._count

    def values(self) -> List[float]:
        """Samples ordered oldest first."""
        tail = self._tail_index()
        return [
            self._samples[(tail + i) % self._capacity] for i in range(self._count)
        ]

    def capacity(self) -> int:
        """Maximum number of samples the buffer holds."""
        return self._capacity

    def is_full(self) -> bool:
        return self._count == self._capacity

    def clear(self) -> None:
        """Drop every sample."""
        self._head = 0
        self._count = 0
        self._sum = 0.0
        for i in range(self._capacity):
            self._samples[i] = 0.0

    def _tail_index(self) -> int:
        return (self._head - self._count) % self._capacity

    def __repr__(self) -> str:
        return (
            f"ErrorHistory(capacity={self._capacity}, count={self._count}, "
            f"avg={self.average():.3f})"
        )
