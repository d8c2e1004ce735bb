"""Queue-level execution policies - RetryPolicy, JobRetention."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy applied by the job broker to failed jobs."""

    max_attempts: int = 3
    backoff_seconds: float = 2.0
    backoff_type: str = "exponential"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_type not in ("exponential", "fixed"):
            raise ValueError(f"Unsupported backoff type: {self.backoff_type}")

    def delay_for(self, attempts_made: int) -> float:
        """Seconds to wait before the next attempt after ``attempts_made`` failures."""
        if self.backoff_seconds <= 0 or attempts_made < 1:
            return 0.0
        if self.backoff_type == "fixed":
            return self.backoff_seconds
        return self.backoff_seconds * (2 ** (attempts_made - 1))


@dataclass(frozen=True)
class JobRetention:
    """How many finished jobs a queue keeps before pruning the oldest."""

    completed: int = 100
    failed: int = 50
