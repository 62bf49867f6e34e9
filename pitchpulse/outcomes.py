"""Typed results for strategy calls.

A scorer, suggester or transcriber either got a usable answer from its
provider (``Ok``), substituted a local value (``Fallback``), or could not
produce anything at all (``Fatal``).  Callers that only want the value use
:func:`unwrap`; callers that report telemetry look at the variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Fallback(Generic[T]):
    value: T
    reason: str


@dataclass(frozen=True)
class Fatal:
    error: Exception


Outcome = Union[Ok[T], Fallback[T], Fatal]


def unwrap(outcome: Outcome[T]) -> T:
    if isinstance(outcome, Fatal):
        raise outcome.error
    return outcome.value


def outcome_source(outcome: Outcome) -> str:
    if isinstance(outcome, Ok):
        return "model"
    if isinstance(outcome, Fallback):
        return "heuristic"
    return "fatal"
