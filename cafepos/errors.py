"""Error taxonomy and the result type returned at the session boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STATE = "state"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    PRINT = "print"


class PosError(Exception):
    """Base error; ``kind`` tags the failure and ``details`` carries its data."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, kind={self.kind.value!r}, details={self.details!r})"


class ValidationError(PosError):
    """Bad quantity, discount, note length or other user input."""

    kind = ErrorKind.VALIDATION


class StateError(PosError):
    """Mutation attempted on an order in a terminal status."""

    kind = ErrorKind.STATE


class NetworkError(PosError):
    """Order API unreachable, timed out or failing server-side."""

    kind = ErrorKind.NETWORK


class NotFoundError(PosError):
    """Order, item or product vanished."""

    kind = ErrorKind.NOT_FOUND


class PrintError(PosError):
    """Raised by a print dispatcher when output could not be produced."""

    kind = ErrorKind.PRINT


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a user-facing action: either a value or a tagged error, plus a message."""

    value: T | None = None
    error: PosError | None = None
    message: str = ""
    notify: bool = True
    events: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        if self.error is None:
            return None
        return self.error.kind

    @classmethod
    def success(cls, value: T | None = None, message: str = "", notify: bool = True, events: tuple[str, ...] = ()) -> Outcome[T]:
        return cls(value=value, message=message, notify=notify, events=events)

    @classmethod
    def failure(cls, error: PosError, notify: bool = True) -> Outcome[T]:
        return cls(error=error, message=error.message, notify=notify)
