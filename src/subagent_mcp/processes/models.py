"""Snapshot records for agent processes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass(slots=True, frozen=True)
class AgentProcessRecord:
    """One process believed to be a coding agent, as seen in one snapshot.

    PIDs are recycled by the OS, so ``pid`` alone only identifies a process
    within the snapshot it came from; use ``identity`` to correlate records
    across snapshots.
    """

    pid: int
    name: str
    cmdline: tuple[str, ...]
    cwd: str
    waiting_for_input: bool
    cpu_percent: float
    memory_bytes: int
    started_at: float
    spawned_by_us: bool
    worktree_path: str | None = None

    @property
    def identity(self) -> tuple[int, float]:
        return (self.pid, self.started_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "name": self.name,
            "cmdline": list(self.cmdline),
            "cwd": self.cwd,
            "waiting_for_input": self.waiting_for_input,
            "cpu_percent": self.cpu_percent,
            "memory_bytes": self.memory_bytes,
            "started_at": self.started_at,
            "spawned_by_us": self.spawned_by_us,
            "worktree_path": self.worktree_path,
        }


@dataclass(slots=True, frozen=True)
class AgentFilter:
    """Criteria applied when listing agent processes. Empty means no filtering."""

    only_our_agents: bool = False
    only_waiting_agents: bool = False
    agent_types: tuple[str, ...] | None = None
    worktree_paths: tuple[str, ...] | None = None

    @classmethod
    def build(
        cls,
        *,
        only_our_agents: bool = False,
        only_waiting_agents: bool = False,
        agent_types: Iterable[str] | None = None,
        worktree_paths: Iterable[str] | None = None,
    ) -> "AgentFilter":
        return cls(
            only_our_agents=only_our_agents,
            only_waiting_agents=only_waiting_agents,
            agent_types=tuple(agent_types) if agent_types is not None else None,
            worktree_paths=tuple(str(path) for path in worktree_paths)
            if worktree_paths is not None
            else None,
        )

    def matches(self, record: AgentProcessRecord) -> bool:
        if self.only_our_agents and not record.spawned_by_us:
            return False
        if self.only_waiting_agents and not record.waiting_for_input:
            return False
        if self.agent_types is not None and record.name not in self.agent_types:
            return False
        if self.worktree_paths is not None:
            # Substring containment, not path equality: "/src/app" also
            # matches an agent in "/src/app-2".
            if record.worktree_path is None:
                return False
            if not any(path in record.worktree_path for path in self.worktree_paths):
                return False
        return True


@dataclass(slots=True)
class AgentSummary:
    total_agents: int = 0
    waiting_for_input: int = 0
    spawned_by_us: int = 0
    total_cpu_percent: float = 0.0
    total_memory_bytes: int = 0
    by_name: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[AgentProcessRecord]) -> "AgentSummary":
        summary = cls()
        for record in records:
            summary.total_agents += 1
            summary.total_cpu_percent += record.cpu_percent
            summary.total_memory_bytes += record.memory_bytes
            if record.waiting_for_input:
                summary.waiting_for_input += 1
            if record.spawned_by_us:
                summary.spawned_by_us += 1
            summary.by_name[record.name] = summary.by_name.get(record.name, 0) + 1
        return summary

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_agents": self.total_agents,
            "waiting_for_input": self.waiting_for_input,
            "spawned_by_us": self.spawned_by_us,
            "total_cpu_percent": self.total_cpu_percent,
            "total_memory_bytes": self.total_memory_bytes,
            "by_name": dict(self.by_name),
        }


__all__ = ["AgentFilter", "AgentProcessRecord", "AgentSummary"]
