"""Domain value objects - pure Python immutable types."""

from dataclasses import dataclass
from uuid import uuid4

from core.utils.datetime import epoch_ms


@dataclass(frozen=True)
class IdempotencyKey:
    """
    Identifier of one enqueue attempt.

    Doubles as the broker job id, so a redelivered or resubmitted job with
    the same key maps onto the same job and the same run row.
    """

    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("Idempotency key must be a non-empty string")

    @classmethod
    def generate(cls, action_id: str) -> "IdempotencyKey":
        """Generate a fresh key for a new enqueue attempt of ``action_id``."""
        return cls(value=f"{action_id}-{epoch_ms()}-{uuid4().hex[:8]}")

    def __str__(self) -> str:
        return self.value
