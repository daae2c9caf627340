"""Agent option and definition models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator


class AgentOptions(BaseModel):
    """How a launched agent process should behave."""

    new_window: bool = Field(
        default=True,
        description="Ask the agent to open a new window or instance.",
    )
    wait: bool = Field(
        default=True,
        description="Block until the agent exits and fail on a non-zero exit status.",
    )
    detach: bool = Field(
        default=False,
        description="Return as soon as the agent starts; its exit status is only logged.",
    )
    custom_options: dict[str, str] = Field(
        default_factory=dict,
        description="Extra flags passed to the agent binary as `--key value` pairs, in order.",
    )

    @field_validator("custom_options", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(key): str(item) for key, item in value.items()}
        raise ValueError("custom_options must be a mapping of flag names to values")


class AgentKindDefinition(BaseModel):
    """Declarative description of an agent binary, loaded from YAML."""

    id: str = Field(..., description="Name the agent kind is registered under.")
    executable: str = Field(..., description="Executable looked up on PATH.")
    description: str = Field(default="", description="Human-friendly description.")
    new_window_flag: str | None = Field(
        default="--new-window",
        description="Flag passed when a new window is requested; null if unsupported.",
    )
    wait_flag: str | None = Field(
        default="--wait",
        description="Flag passed when waiting is requested; null if unsupported.",
    )
    base_args: list[str] = Field(
        default_factory=list,
        description="Arguments placed right after the executable.",
    )
    trailing_args: list[str] = Field(
        default_factory=list,
        description="Arguments appended after every other argument.",
    )
    pass_worktree_arg: bool = Field(
        default=True,
        description="Whether the worktree path is passed as a positional argument.",
    )

    @field_validator("id", "executable")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Agent kind id and executable must not be empty")
        return normalized

    @field_validator("base_args", "trailing_args", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise ValueError("base_args and trailing_args must be sequences of strings")


@dataclass(slots=True)
class AgentInfo:
    name: str
    available: bool
    version: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "available": self.available,
            "version": self.version,
            "description": self.description,
        }


__all__ = ["AgentInfo", "AgentKindDefinition", "AgentOptions"]
