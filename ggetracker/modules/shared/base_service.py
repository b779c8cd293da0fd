"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the API's domain services. Services
validate their inputs, read through the cache accessor and shape the
documents the HTTP layer returns.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Access to the shared cache accessor
- Validation helpers raising `InvalidInputError`

What this class does NOT do:
- Choose HTTP status codes (the route layer maps exceptions)
- Own any scarce resource (those stay behind admission queues)

Usage
-----
    class PlayerService(BaseService):
        def __init__(self, accessor, database, registry):
            super().__init__(accessor, get_logger(__name__))
            self.db = database
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ggetracker.core.exceptions import InvalidInputError

if TYPE_CHECKING:
    from logging import Logger

    from ggetracker.core.cache.accessor import CacheAccessor


class BaseService:
    """
    Base class for domain services.

    Args:
        accessor: Shared cache-aside accessor
        logger: Structured logger instance
    """

    def __init__(self, accessor: CacheAccessor, logger: Logger) -> None:
        self._cache = accessor
        self.log = logger

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log a service operation with structured context.

        Args:
            operation: Name of the operation being performed
            **context: Additional context data
        """
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def validate_range(self, value: Any, name: str, min_val: int, max_val: int) -> int:
        """
        Coerce a value to int and check it lies within [min_val, max_val].

        Raises:
            InvalidInputError: If value is not an integer or is out of range
        """
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise InvalidInputError(name, f"{name} must be an integer, got {value!r}")

        if not (min_val <= number <= max_val):
            raise InvalidInputError(
                name,
                f"{name} must be between {min_val} and {max_val}, got {number}",
            )
        return number
