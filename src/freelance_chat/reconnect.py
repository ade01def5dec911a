"""
Exponential backoff for reopening a dropped live channel.
"""

from typing import Iterator, Optional


class ReconnectPolicy:
    def __init__(
        self,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        multiplier: float = 2.0,
        max_attempts: Optional[int] = 5,
    ):
        if initial_delay < 0 or max_delay < 0:
            raise ValueError("delays must be non-negative")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts

    def delays(self) -> Iterator[float]:
        """Delay before each attempt; stops after ``max_attempts`` (None = forever)."""
        delay = self.initial_delay
        attempt = 0
        while self.max_attempts is None or attempt < self.max_attempts:
            yield min(delay, self.max_delay)
            delay *= self.multiplier
            attempt += 1

    def __repr__(self) -> str:
        return (
            f"ReconnectPolicy(initial_delay={self.initial_delay}, max_delay={self.max_delay}, "
            f"multiplier={self.multiplier}, max_attempts={self.max_attempts})"
        )
