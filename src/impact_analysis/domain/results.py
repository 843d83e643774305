"""Explicit per-item results for fan-out stages.

A fan-out stage runs one sub-call per item (statement, category).  Instead of
suppressing exceptions inline, each sub-call is wrapped by :func:`capture`,
which turns a domain failure into a :class:`Failure` value.  The stage then
folds the results with :func:`partition` and decides what a failure
contributes.  Non-domain exceptions (programming errors) still propagate.
"""

from __future__ import annotations

from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from .exceptions import ImpactAnalysisError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """The sub-call for ``item`` produced ``value``."""

    item: Any
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """The sub-call for ``item`` failed with ``error``."""

    item: Any
    error: ImpactAnalysisError

    @property
    def ok(self) -> bool:
        return False


ItemResult = Union[Success[T], Failure]


async def capture(item: Any, awaitable: Awaitable[T]) -> ItemResult[T]:
    """Await *awaitable* and wrap its outcome for *item*."""
    try:
        value = await awaitable
    except ImpactAnalysisError as exc:
        return Failure(item=item, error=exc)
    return Success(item=item, value=value)


def partition(
    results: Iterable[ItemResult[T]],
) -> tuple[list[Success[T]], list[Failure]]:
    """Split *results* into successes and failures, preserving order."""
    successes: list[Success[T]] = []
    failures: list[Failure] = []
    for result in results:
        if isinstance(result, Failure):
            failures.append(result)
        else:
            successes.append(result)
    return successes, failures
