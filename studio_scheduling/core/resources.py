"""Resource kinds and their scheduling capabilities."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict


class ResourceKind(str, enum.Enum):
    STAFF = "STAFF"
    EQUIPMENT = "EQUIPMENT"
    ROOM = "ROOM"


class BufferPolicy(str, enum.Enum):
    # The owning booking's buffers pad the assignment window.
    BOOKING = "BOOKING"
    NONE = "NONE"


@dataclass(frozen=True, order=True)
class ResourceKey:
    kind: ResourceKind
    resource_id: int

    @property
    def lock_name(self) -> str:
        return f"{self.kind.value}:{self.resource_id}"

    def __str__(self) -> str:  # pragma: no cover - debugging helper
        return self.lock_name


@dataclass(frozen=True)
class ResourcePolicy:
    kind: ResourceKind
    is_exclusive: bool
    buffer_policy: BufferPolicy
    open_ended_custody: bool = False


_POLICIES: Dict[ResourceKind, ResourcePolicy] = {
    ResourceKind.STAFF: ResourcePolicy(
        kind=ResourceKind.STAFF,
        is_exclusive=False,
        buffer_policy=BufferPolicy.BOOKING,
    ),
    ResourceKind.ROOM: ResourcePolicy(
        kind=ResourceKind.ROOM,
        is_exclusive=False,
        buffer_policy=BufferPolicy.BOOKING,
    ),
    ResourceKind.EQUIPMENT: ResourcePolicy(
        kind=ResourceKind.EQUIPMENT,
        is_exclusive=True,
        buffer_policy=BufferPolicy.BOOKING,
        open_ended_custody=True,
    ),
}


def policy_for(kind: ResourceKind) -> ResourcePolicy:
    return _POLICIES[ResourceKind(kind)]


__all__ = ["BufferPolicy", "ResourceKey", "ResourceKind", "ResourcePolicy", "policy_for"]
