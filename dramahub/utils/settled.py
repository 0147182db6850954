# dramahub/utils/settled.py
from __future__ import annotations

"""Settled results for best-effort parallel work.

`settle()` wraps an awaitable so it never raises into an `asyncio.gather`
join point; each slot reports either a value or the exception it failed with.

    credits, videos = await asyncio.gather(settle(a()), settle(b()))
    if credits.ok:
        ...
"""

from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Settled(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle(aw: Awaitable[T]) -> Settled[T]:
    try:
        return Settled(value=await aw)
    except Exception as exc:  # noqa: BLE001 - surfaced through Settled.error
        return Settled(error=exc)


__all__ = ["Settled", "settle"]
