"""Activity graph node types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Operation = Literal["read", "write", "search"]


@dataclass
class ActivityCount:
    reads: int = 0
    writes: int = 0
    searches: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"reads": self.reads, "writes": self.writes, "searches": self.searches}


@dataclass
class LastActivity:
    type: Operation
    timestamp: int
    agent_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "timestamp": self.timestamp}
        if self.agent_id:
            data["agentId"] = self.agent_id
        return data


@dataclass
class ActivityNode:
    """One file or folder in the activity graph.

    ``id`` is the canonical project-relative key; ``depth`` is -1 for the
    root and 0 for its direct children.
    """

    id: str
    name: str
    is_folder: bool
    depth: int
    activity_count: ActivityCount = field(default_factory=ActivityCount)
    active_operation: Operation | None = None
    last_activity: LastActivity | None = None
    accessed_by: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "isFolder": self.is_folder,
            "depth": self.depth,
            "activityCount": self.activity_count.to_dict(),
        }
        if self.active_operation is not None:
            data["activeOperation"] = self.active_operation
        if self.last_activity is not None:
            data["lastActivity"] = self.last_activity.to_dict()
        if self.accessed_by:
            data["accessedBy"] = list(self.accessed_by)
        return data
