"""
Error types and collaborator guards for CareFinder.

Only InputError is meant to reach API callers. Collaborator errors are raised
by the geo clients and directories, then caught and logged where the search
can continue with degraded data.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar


T = TypeVar("T")


class CareFinderError(Exception):
    """Base exception for CareFinder errors."""


class InputError(CareFinderError, ValueError):
    """Rejected request parameters (radius, limit, coordinates)."""


class CollaboratorError(CareFinderError):
    def __init__(self, message: str, collaborator: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.collaborator = collaborator
        self.status_code = status_code


class CollaboratorTimeout(CollaboratorError):
    """An external call exceeded its time budget."""


class CollaboratorFailure(CollaboratorError):
    """An external call failed or returned something unusable."""


async def within_budget(awaitable: Awaitable[T], seconds: float, collaborator: str) -> T:
    """
    Await ``awaitable`` for at most ``seconds``.

    Raises CollaboratorTimeout when the budget is exhausted; other exceptions
    propagate unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise CollaboratorTimeout(
            f"{collaborator} did not answer within {seconds:g}s", collaborator, 408
        ) from None
