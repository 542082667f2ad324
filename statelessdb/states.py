"""The default computation state and time helpers."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .events import Event
from .helpers import compare_maps
from .logs import new_logger

_log = new_logger("states")


def new_time_now() -> int:
    """Return the current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(eq=False)
class ComputeState:
    """State of a computation, kept encrypted by the client between requests.

    The attached events are internal and take no part in equality.
    """

    id: uuid.UUID
    owner: uuid.UUID
    created: int = 0
    updated: int = 0
    public: Optional[Dict[str, Any]] = None
    private: Optional[Dict[str, Any]] = None
    _events: List[Event] = field(default_factory=list, repr=False)

    @property
    def events(self) -> List[Event]:
        """Events attached to this state, in the order they were added."""
        return self._events

    def add_event(self, *args: Event) -> None:
        """Attach one or more events to this state."""
        self._events.extend(args)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, ComputeState):
            return NotImplemented
        if (self.id, self.owner, self.created, self.updated) != (
            other.id,
            other.owner,
            other.created,
            other.updated,
        ):
            return False
        return compare_maps(self.public or {}, other.public or {}) and compare_maps(
            self.private or {}, other.private or {}
        )

    __hash__ = None  # type: ignore[assignment]

    def initialize(self) -> None:
        """Prepare internal state; the default state needs nothing."""