"""Value-or-failure results for steps whose failure the caller may absorb."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attempt(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, value: T) -> "Attempt[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "Attempt[T]":
        return cls(error=reason)


async def attempt(
    func: Callable[..., Awaitable[Optional[T]]], *args: Any, **kwargs: Any
) -> Attempt[T]:
    """Await ``func(*args, **kwargs)`` and capture its outcome.

    ``None`` results count as failures; exceptions are turned into failures
    carrying their message.
    """
    try:
        value = await func(*args, **kwargs)
    except Exception as exc:
        logger.debug("%s failed: %s", getattr(func, "__name__", func), exc, exc_info=True)
        return Attempt.failure(f"{type(exc).__name__}: {exc}")
    if value is None:
        return Attempt.failure("no result")
    return Attempt.success(value)
