"""Data schemas for tracked agent sessions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AgentSource(Enum):
    """Which producer (IDE/tool) an agent's events come from."""

    CLAUDE = "claude"
    WINDSURF = "windsurf"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> AgentSource:
        """Map a producer hint to a source, defaulting to UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    AgentSource.CLAUDE: "Claude Code",
    AgentSource.WINDSURF: "Windsurf",
    AgentSource.UNKNOWN: "Agent",
}


class AgentRole(Enum):
    """Role of an agent in a multi-agent hierarchy."""

    MAIN = "main"
    SUB_AGENT = "sub-agent"
    SPECIALIST = "specialist"


class AgentStatus(Enum):
    """Terminal-looking status reported by a stop event."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"


class ToolCategory(Enum):
    """Tool grouping used by viewers for styling."""

    FILE = "file"
    SEARCH = "search"
    EXECUTE = "execute"
    SKILL = "skill"
    MCP = "mcp"
    TASK = "task"
    OTHER = "other"


_AGENT_ID_RE = re.compile(r"^[0-9a-fA-F-]{8,}$")
_PLACEHOLDER_IDS = frozenset({"null", "undefined"})

SPECIALIST_TYPES = ("plan", "explore", "bash", "researcher", "reviewer", "writer", "analyst")

_TOOL_CATEGORIES = {
    ToolCategory.FILE: {"read", "write", "edit", "multiedit", "notebookedit"},
    ToolCategory.SEARCH: {"grep", "glob", "websearch", "webfetch"},
    ToolCategory.EXECUTE: {"bash", "killshell"},
    ToolCategory.TASK: {"task", "taskoutput"},
    ToolCategory.SKILL: {"skill"},
}


def is_valid_agent_id(agent_id: Any) -> bool:
    """Check that an agent id looks like a real session token.

    Accepts at least 8 hex digits/dashes. Placeholders such as ``"null"``,
    ``"undefined"`` and all-zero tokens are rejected.
    """
    if not agent_id or not isinstance(agent_id, str):
        return False
    if agent_id.lower() in _PLACEHOLDER_IDS:
        return False
    if not _AGENT_ID_RE.match(agent_id):
        return False
    return not set(agent_id) <= {"0", "-"}


def categorize_tool(tool_name: str, mcp_server: str | None = None) -> ToolCategory:
    """Categorize a tool by name; any MCP server context wins."""
    if mcp_server:
        return ToolCategory.MCP
    lowered = tool_name.lower()
    for category, names in _TOOL_CATEGORIES.items():
        if lowered in names:
            return category
    return ToolCategory.OTHER


def determine_role(
    agent_type: str | None = None,
    parent_agent_id: str | None = None,
    agent_name: str | None = None,
) -> AgentRole:
    """Derive an agent's role from its registration metadata."""
    if parent_agent_id:
        return AgentRole.SUB_AGENT
    if agent_type and agent_type.lower() in SPECIALIST_TYPES:
        return AgentRole.SPECIALIST
    if agent_name:
        lowered = agent_name.lower()
        if any(t in lowered for t in SPECIALIST_TYPES):
            return AgentRole.SPECIALIST
    return AgentRole.MAIN


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def build_display_name(
    source: AgentSource,
    ordinal: int,
    agent_name: str | None = None,
    agent_type: str | None = None,
    role: AgentRole | None = None,
) -> str:
    """Format a display name such as ``"Claude Code 2"`` or ``"Writer 1"``."""
    if agent_name:
        return f"{_capitalize(agent_name)} {ordinal}"
    if agent_type:
        return f"{source.label} {_capitalize(agent_type)} {ordinal}"
    if role is AgentRole.SPECIALIST:
        return f"{source.label} Specialist {ordinal}"
    return f"{source.label} {ordinal}"


def _ordinal_from_name(display_name: str) -> int:
    match = re.search(r"(\d+)$", display_name or "")
    return int(match.group(1)) if match else 1


@dataclass
class AgentSession:
    """Live state of one tracked agent process."""

    agent_id: str
    source: AgentSource
    ordinal: int
    display_name: str
    role: AgentRole
    last_activity: int  # epoch ms of the last applied event
    last_seen: int  # epoch ms of the last confirmation of liveness
    is_thinking: bool = False
    waiting_for_input: bool = False
    status: AgentStatus | None = None
    status_timestamp: int | None = None
    pending_tool_start: int | None = None  # epoch ms of the last tool end
    current_command: str | None = None
    tool_input: str | None = None
    tool_category: ToolCategory | None = None
    agent_type: str | None = None
    agent_name: str | None = None
    model: str | None = None
    last_duration: float | None = None
    parent_agent_id: str | None = None
    child_agent_ids: list[str] = field(default_factory=list)
    skill_name: str | None = None
    skill_command: str | None = None
    mcp_server: str | None = None
    mcp_tool: str | None = None
    active_rules: list[str] | None = None
    operation_count: int = 0
    file_reads: int = 0
    file_writes: int = 0
    skill_invocations: int = 0
    mcp_calls: int = 0

    def refresh_display_name(self) -> None:
        """Rebuild the display name from current metadata, keeping the ordinal."""
        self.display_name = build_display_name(
            self.source, self.ordinal, self.agent_name, self.agent_type, self.role
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agentId": self.agent_id,
            "source": self.source.value,
            "ordinal": self.ordinal,
            "displayName": self.display_name,
            "agentRole": self.role.value,
            "lastActivity": self.last_activity,
            "lastSeen": self.last_seen,
            "isThinking": self.is_thinking,
            "waitingForInput": self.waiting_for_input,
            "status": self.status.value if self.status else None,
            "statusTimestamp": self.status_timestamp,
            "pendingToolStart": self.pending_tool_start,
            "currentCommand": self.current_command,
            "toolInput": self.tool_input,
            "toolCategory": self.tool_category.value if self.tool_category else None,
            "agentType": self.agent_type,
            "agentName": self.agent_name,
            "model": self.model,
            "lastDuration": self.last_duration,
            "parentAgentId": self.parent_agent_id,
            "childAgentIds": list(self.child_agent_ids),
            "skillName": self.skill_name,
            "skillCommand": self.skill_command,
            "mcpServer": self.mcp_server,
            "mcpTool": self.mcp_tool,
            "activeRules": list(self.active_rules) if self.active_rules is not None else None,
            "operationCount": self.operation_count,
            "fileReads": self.file_reads,
            "fileWrites": self.file_writes,
            "skillInvocations": self.skill_invocations,
            "mcpCalls": self.mcp_calls,
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentSession:
        """Rebuild a session from :meth:`to_dict` output.

        Missing counters and role default the way older state files expect.
        """
        source = AgentSource.parse(data.get("source", "unknown"))
        display_name = data.get("displayName") or ""
        ordinal = data.get("ordinal") or _ordinal_from_name(display_name)
        last_activity = int(data["lastActivity"])
        status = data.get("status")
        category = data.get("toolCategory")
        session = cls(
            agent_id=data["agentId"],
            source=source,
            ordinal=int(ordinal),
            display_name=display_name,
            role=AgentRole(data.get("agentRole") or "main"),
            last_activity=last_activity,
            last_seen=int(data.get("lastSeen") or last_activity),
            is_thinking=bool(data.get("isThinking", False)),
            waiting_for_input=bool(data.get("waitingForInput", False)),
            status=AgentStatus(status) if status else None,
            status_timestamp=data.get("statusTimestamp"),
            pending_tool_start=data.get("pendingToolStart"),
            current_command=data.get("currentCommand"),
            tool_input=data.get("toolInput"),
            tool_category=ToolCategory(category) if category else None,
            agent_type=data.get("agentType"),
            agent_name=data.get("agentName"),
            model=data.get("model"),
            last_duration=data.get("lastDuration"),
            parent_agent_id=data.get("parentAgentId"),
            child_agent_ids=list(data.get("childAgentIds") or []),
            skill_name=data.get("skillName"),
            skill_command=data.get("skillCommand"),
            mcp_server=data.get("mcpServer"),
            mcp_tool=data.get("mcpTool"),
            active_rules=data.get("activeRules"),
            operation_count=data.get("operationCount") or 0,
            file_reads=data.get("fileReads") or 0,
            file_writes=data.get("fileWrites") or 0,
            skill_invocations=data.get("skillInvocations") or 0,
            mcp_calls=data.get("mcpCalls") or 0,
        )
        if not session.display_name:
            session.refresh_display_name()
        return session


@dataclass
class SessionDelta:
    """Field-level changes applied to an existing session by ``touch``.

    ``tool_phase`` is ``"start"`` or ``"end"`` for tool transitions reported
    by thinking events; it drives tool-input clearing, status clearing and
    waiting-for-input bookkeeping. File activity sets ``is_thinking``
    directly and leaves ``tool_phase`` unset.
    """

    is_thinking: bool | None = None
    tool_phase: str | None = None
    tool_name: str | None = None
    tool_input: str | None = None
    tool_category: ToolCategory | None = None
    agent_name: str | None = None
    agent_type: str | None = None
    model: str | None = None
    duration: float | None = None
    skill_name: str | None = None
    skill_command: str | None = None
    count_skill_invocation: bool = True
    mcp_server: str | None = None
    mcp_tool: str | None = None
    rule_context: list[str] | None = None
    file_read: bool = False
    file_write: bool = False
