"""Ingest payload models for the two hook message families.

Hooks post camelCase JSON; fields are exposed in snake_case on the models.
Unknown extra keys are ignored so newer hooks keep working.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from codemap.sessions.schema import AgentSource, AgentStatus

ActivityType = Literal[
    "read-start", "read-end", "write-start", "write-end", "search-start", "search-end"
]
ThinkingType = Literal["thinking-start", "thinking-end", "agent-stop"]


class HookModel(BaseModel):
    """Base model for hook payloads with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("source", mode="before", check_fields=False)
    @classmethod
    def _lenient_source(cls, value: Any) -> AgentSource:
        return AgentSource.parse(value) if value is not None else AgentSource.UNKNOWN


class ActivityEvent(HookModel):
    """File activity from the file-activity hook.

    For search events ``file_path`` holds the search pattern, not a path.
    """

    type: ActivityType
    file_path: str = Field(alias="filePath")
    agent_id: str | None = Field(default=None, alias="agentId")
    source: AgentSource = AgentSource.UNKNOWN
    timestamp: float | None = None
    skill_name: str | None = Field(default=None, alias="skillName")
    mcp_server: str | None = Field(default=None, alias="mcpServer")

    @property
    def operation(self) -> str:
        """``read``, ``write`` or ``search``."""
        return self.type.split("-", 1)[0]

    @property
    def is_start(self) -> bool:
        return self.type.endswith("-start")

    @property
    def is_search(self) -> bool:
        return self.type.startswith("search")


class ThinkingEvent(HookModel):
    """Agent/tool state transition from the thinking hook."""

    type: ThinkingType
    agent_id: str = Field(default="", alias="agentId")
    source: AgentSource = AgentSource.UNKNOWN
    timestamp: float | None = None
    tool_name: str | None = Field(default=None, alias="toolName")
    tool_input: str | None = Field(default=None, alias="toolInput")
    agent_type: str | None = Field(default=None, alias="agentType")
    model: str | None = None
    duration: float | None = None
    status: AgentStatus | None = None
    loop_count: int | None = Field(default=None, alias="loopCount")
    agent_name: str | None = Field(default=None, alias="agentName")
    agent_role: str | None = Field(default=None, alias="agentRole")
    parent_agent_id: str | None = Field(default=None, alias="parentAgentId")
    skill_name: str | None = Field(default=None, alias="skillName")
    skill_command: str | None = Field(default=None, alias="skillCommand")
    mcp_server: str | None = Field(default=None, alias="mcpServer")
    mcp_tool: str | None = Field(default=None, alias="mcpTool")
    rule_context: list[str] | None = Field(default=None, alias="ruleContext")
