from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

"""Result value used as the return type of every public engine operation.

Operations never raise for expected failures (out-of-range index, cancelled
batch, rule violations). They return ``Result.failure(...)`` with an
``ErrorKind`` so callers can branch without exception handling. Exceptions
are reserved for programming faults such as reading ``value`` from a failure.
"""

__all__ = [
    "ErrorKind",
    "Result",
    "ResultAccessError",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    MINIMUM_ROW_VIOLATION = "MINIMUM_ROW_VIOLATION"
    NULL_INPUT = "NULL_INPUT"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    READ_ONLY = "READ_ONLY"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"
    BATCH = "BATCH"
    FATAL = "FATAL"


class ResultAccessError(RuntimeError):
    """Raised when the value of a failed result is read."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success carrying a value, or failure carrying a message and kind.

    ``errors`` holds validation errors for VALIDATION failures and ``partial``
    holds whatever payload was accumulated before a batch stopped.
    """
    ok: bool
    _value: Any = None
    message: str | None = None
    kind: ErrorKind | None = None
    cause: BaseException | None = None
    errors: tuple[Any, ...] = field(default_factory=tuple)
    partial: Any = None

    @classmethod
    def success(cls, value: T = None) -> Result[T]:  # type: ignore[assignment]
        return cls(ok=True, _value=value)

    @classmethod
    def failure(
        cls,
        message: str,
        kind: ErrorKind = ErrorKind.FATAL,
        *,
        cause: BaseException | None = None,
        errors: tuple[Any, ...] | list[Any] = (),
        partial: Any = None,
    ) -> Result[T]:
        return cls(
            ok=False,
            message=message,
            kind=kind,
            cause=cause,
            errors=tuple(errors),
            partial=partial,
        )

    @classmethod
    def from_callable(cls, fn: Callable[[], T], message: str = "operation failed") -> Result[T]:
        """Run ``fn`` and wrap an unexpected exception as a FATAL failure."""
        try:
            return cls.success(fn())
        except Exception as e:
            logger.exception("%s", message)
            return cls.failure(f"{message}: {e}", ErrorKind.FATAL, cause=e)

    @property
    def is_success(self) -> bool:
        return self.ok

    @property
    def is_failure(self) -> bool:
        return not self.ok

    @property
    def value(self) -> T:
        if not self.ok:
            raise ResultAccessError(f"cannot read value of failed result: {self.message}")
        return self._value

    def value_or_default(self, default: Any = None) -> Any:
        return self._value if self.ok else default

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if not self.ok:
            return self  # type: ignore[return-value]
        try:
            return Result.success(fn(self._value))
        except Exception as e:
            return Result.failure(f"map failed: {e}", ErrorKind.FATAL, cause=e)

    def bind(self, fn: Callable[[T], Result[U]]) -> Result[U]:
        if not self.ok:
            return self  # type: ignore[return-value]
        try:
            return fn(self._value)
        except Exception as e:
            return Result.failure(f"bind failed: {e}", ErrorKind.FATAL, cause=e)

    def on_success(self, fn: Callable[[T], Any]) -> Result[T]:
        if self.ok:
            try:
                fn(self._value)
            except Exception:
                logger.exception("on_success callback raised")
        return self

    def on_failure(self, fn: Callable[[Result[T]], Any]) -> Result[T]:
        if not self.ok:
            try:
                fn(self)
            except Exception:
                logger.exception("on_failure callback raised")
        return self

    def __repr__(self) -> str:
        if self.ok:
            return f"Success({self._value!r})"
        return f"Failure({self.kind.value if self.kind else None}: {self.message!r})"
