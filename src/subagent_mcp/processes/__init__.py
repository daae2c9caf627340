"""Process-table inspection for agent processes."""

from .inspector import AGENT_PROCESS_NAMES, SPAWN_MARKERS, ProcessInspector, stdin_is_terminal
from .models import AgentFilter, AgentProcessRecord, AgentSummary

__all__ = [
    "AGENT_PROCESS_NAMES",
    "SPAWN_MARKERS",
    "AgentFilter",
    "AgentProcessRecord",
    "AgentSummary",
    "ProcessInspector",
    "stdin_is_terminal",
]
