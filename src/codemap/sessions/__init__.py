"""Agent session roster: schema, registry and persistence."""

from codemap.sessions.registry import SessionRegistry
from codemap.sessions.schema import (
    AgentRole,
    AgentSession,
    AgentSource,
    AgentStatus,
    SessionDelta,
    ToolCategory,
    categorize_tool,
    is_valid_agent_id,
)
from codemap.sessions.storage import SessionStateFile

__all__ = [
    "AgentRole",
    "AgentSession",
    "AgentSource",
    "AgentStatus",
    "SessionDelta",
    "SessionRegistry",
    "SessionStateFile",
    "ToolCategory",
    "categorize_tool",
    "is_valid_agent_id",
]
