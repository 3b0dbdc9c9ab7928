"""Request-scoped context handed to every registry operation."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, on which extension, and what time it is."""

    actor_id: int
    extension: str
    clock: Callable[[], datetime] = field(default=now_utc)

    def current_actor_id(self) -> int:
        return self.actor_id

    def current_extension(self) -> str:
        return self.extension

    def now(self) -> datetime:
        return self.clock()
