"""Agent launchers and their registry."""

from .builtin import BUILTIN_AGENTS, DEFAULT_AGENT_TYPE, CodexAgent, CursorAgent, CursorCliAgent
from .launcher import AgentLauncher, CommandLineAgent, DefinedAgent
from .loader import AgentKindLoader
from .models import AgentInfo, AgentKindDefinition, AgentOptions
from .registry import AgentRegistry, build_registry

__all__ = [
    "AgentInfo",
    "AgentKindDefinition",
    "AgentKindLoader",
    "AgentLauncher",
    "AgentOptions",
    "AgentRegistry",
    "BUILTIN_AGENTS",
    "CodexAgent",
    "CommandLineAgent",
    "CursorAgent",
    "CursorCliAgent",
    "DEFAULT_AGENT_TYPE",
    "DefinedAgent",
    "build_registry",
]
