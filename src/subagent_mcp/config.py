"""Configuration management for the subagent worktree server."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class SubagentSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    repo_path: Path = Field(default=Path("."), validation_alias="SUBAGENT_REPO_PATH")
    default_agent_type: str = Field(default="cursor-agent", validation_alias="SUBAGENT_DEFAULT_AGENT")
    agent_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("agents"),), validation_alias="SUBAGENT_AGENT_PATHS"
    )
    spawn_markers: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(), validation_alias="SUBAGENT_SPAWN_MARKERS"
    )
    log_level: str = Field(default="INFO", validation_alias="SUBAGENT_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "SUBAGENT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("default_agent_type")
    @classmethod
    def _normalize_agent_type(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("SUBAGENT_DEFAULT_AGENT must not be empty")
        return normalized

    @field_validator("agent_paths", mode="before")
    @classmethod
    def _parse_agent_paths(cls, value):
        if value is None or value == "":
            return (Path("agents"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("agents"),)
        raise ValueError("SUBAGENT_AGENT_PATHS must be a list of paths or a path-separated string")

    @field_validator("spawn_markers", mode="before")
    @classmethod
    def _parse_spawn_markers(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value if str(item).strip())
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        raise ValueError("SUBAGENT_SPAWN_MARKERS must be a list or a comma-separated string")


@lru_cache(maxsize=1)
def get_settings() -> SubagentSettings:
    """Return cached settings instance."""

    settings = SubagentSettings()
    settings.repo_path = settings.repo_path.expanduser().resolve()
    settings.agent_paths = tuple(path.expanduser().resolve() for path in settings.agent_paths)
    return settings


__all__ = ["SubagentSettings", "get_settings"]
