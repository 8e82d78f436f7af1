"""Result values returned by every CatalogClient operation.

Failures travel as values across component boundaries. ``Failure`` still
carries a usable, empty-shaped payload so consumers never need a null check.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from hianime_catalog.errors import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    data: T
    from_cache: bool = False


@dataclass(frozen=True)
class StaleFallback(Generic[T]):
    data: T
    reason: str


@dataclass(frozen=True)
class Failure(Generic[T]):
    data: T
    reason: str
    kind: ErrorKind


RequestOutcome = Success[T] | StaleFallback[T] | Failure[T]
