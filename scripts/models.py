"""
Kaka data model - plain value types shared by the engine and the Cocoa glue.
No PyObjC imports here so the engine can be exercised anywhere.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Session states
INACTIVE = 'inactive'
ON_TARGET = 'on_target'
DISTRACTED = 'distracted'

SESSION_STATES = (INACTIVE, ON_TARGET, DISTRACTED)


@dataclass(frozen=True)
class Rect:
    """Rectangle in canonical (Cocoa, bottom-left origin) coordinates."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_bounds(cls, bounds) -> 'Rect':
        """Build from a Quartz kCGWindowBounds dict (X/Y/Width/Height)."""
        return cls(
            float(bounds['X']),
            float(bounds['Y']),
            float(bounds['Width']),
            float(bounds['Height']),
        )

    @classmethod
    def from_nsrect(cls, frame) -> 'Rect':
        return cls(
            float(frame.origin.x),
            float(frame.origin.y),
            float(frame.size.width),
            float(frame.size.height),
        )

    def as_tuple(self) -> tuple:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class TrackedWindow:
    """One on-screen window of a watched process."""

    window_id: int
    frame: Rect
    owner_pid: int
    name: Optional[str] = None


@dataclass(frozen=True, eq=False)
class AppIdentity:
    """A running application. Two identities are equal iff the pid matches."""

    process_id: int
    name: str
    bundle_identifier: Optional[str] = None
    icon: Any = field(default=None, repr=False)

    def __eq__(self, other):
        if not isinstance(other, AppIdentity):
            return NotImplemented
        return self.process_id == other.process_id

    def __hash__(self):
        return hash(self.process_id)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable copy of the session, handed to state listeners."""

    state: str
    target_app: Optional[AppIdentity]
    distracting_app: Optional[AppIdentity]

    @property
    def is_active(self) -> bool:
        return self.state != INACTIVE

    @property
    def is_distracted(self) -> bool:
        return self.state == DISTRACTED
