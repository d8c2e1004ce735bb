"""Domain value objects."""

from .value_objects import IdempotencyKey

__all__ = ["IdempotencyKey"]
