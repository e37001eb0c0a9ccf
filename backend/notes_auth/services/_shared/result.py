"""
Typed outcomes for token operations.

Every lifecycle operation returns either :class:`Ok` carrying its payload or
:class:`Fail` carrying one :class:`FailureKind`. Callers branch on
``isinstance`` instead of catching exceptions, so the reuse-detection and
expiry-cleanup paths cannot be skipped by an over-broad ``except``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class FailureKind(Enum):
    """Failure taxonomy shared by the codec, the engines and the facade."""

    MALFORMED = auto()
    INVALID_SIGNATURE = auto()
    EXPIRED = auto()
    REUSE_DETECTED = auto()
    ALREADY_OUTSTANDING = auto()
    UNAUTHORIZED = auto()
    NOT_FOUND = auto()
    EMAIL_NOT_VERIFIED = auto()
    ALREADY_VERIFIED = auto()

    @property
    def is_security_event(self) -> bool:
        """Whether this outcome should be surfaced to operators as an incident."""
        return self is FailureKind.REUSE_DETECTED


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful outcome.

    :ivar value: Operation payload.
    """

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Fail:
    """
    Failed outcome.

    :ivar kind: Failure category.
    :ivar detail: Operator-facing explanation; never shown verbatim to clients.
    :ivar subject: Signature-verified token subject, when one could be read.
        Only the codec fills this in, for tokens that are authentic but expired.
    """

    kind: FailureKind
    detail: str = ""
    subject: str | None = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Fail]


def fail(kind: FailureKind, detail: str = "", *, subject: str | None = None) -> Fail:
    """Shorthand used by the engines to build failures."""
    return Fail(kind=kind, detail=detail, subject=subject)


__all__ = ["FailureKind", "Ok", "Fail", "Result", "fail"]
