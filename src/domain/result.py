"""Explicit outcomes for single-record lookups.

A lookup either finds the record, proves it absent, or fails for a reason that
may go away on retry. Callers pick what to do with each case instead of
receiving ``None`` for both of the last two.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    key: str


@dataclass(frozen=True)
class TransientError:
    key: str
    error: Exception


Lookup = Union[Found[T], NotFound, TransientError]


def value_or_none(lookup: Lookup[T]) -> T | None:
    """Return the found value, ``None`` when absent, and raise on store failure."""
    if isinstance(lookup, Found):
        return lookup.value
    if isinstance(lookup, TransientError):
        raise RuntimeError(f"Lookup of {lookup.key} failed: {lookup.error}") from lookup.error
    return None
