"""Sequence worktree, process, and agent operations into subagent workflows."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .agents import DEFAULT_AGENT_TYPE, AgentInfo, AgentOptions, AgentRegistry, build_registry
from .config import SubagentSettings
from .errors import WorktreeError
from .git import WorktreeRecord, WorktreeStore
from .processes import AgentFilter, AgentProcessRecord, AgentSummary, ProcessInspector

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SpawnResult:
    worktree_path: Path
    branch_name: str
    agent_type: str

    @property
    def message(self) -> str:
        return (
            f"Successfully spawned {self.agent_type} subagent in worktree: {self.worktree_path}"
        )


@dataclass(slots=True)
class CleanupResult:
    worktree_path: Path
    branch_name: str | None = None
    killed_pids: list[int] = field(default_factory=list)
    failed_pids: list[int] = field(default_factory=list)
    branch_removed: bool = False
    branch_error: str | None = None

    @property
    def message(self) -> str:
        parts = [f"Successfully cleaned up worktree: {self.worktree_path}"]
        if self.killed_pids or self.failed_pids:
            parts.append(f"killed {len(self.killed_pids)} agent process(es)")
            if self.failed_pids:
                pids = ", ".join(str(pid) for pid in self.failed_pids)
                parts.append(f"failed to signal pid(s) {pids}")
        if self.branch_removed:
            parts.append(f"deleted branch: {self.branch_name}")
        elif self.branch_error and self.branch_name:
            parts.append(f"failed to delete branch {self.branch_name}: {self.branch_error}")
        elif self.branch_error:
            parts.append(f"branch not deleted: {self.branch_error}")
        return "; ".join(parts)


@dataclass(slots=True)
class WorktreeListing:
    worktree: WorktreeRecord
    agents: list[AgentProcessRecord] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.worktree.to_dict()
        if self.agents is not None:
            payload["agents"] = [agent.to_dict() for agent in self.agents]
        return payload


class Orchestrator:
    """Compose the worktree store, process inspector, and agent registry.

    The orchestrator holds no state of its own: each call queries git and the
    process table afresh. Steps within a call run strictly in order.
    """

    def __init__(
        self,
        store: WorktreeStore,
        inspector: ProcessInspector,
        registry: AgentRegistry,
        *,
        default_agent_type: str = DEFAULT_AGENT_TYPE,
    ) -> None:
        self._store = store
        self._inspector = inspector
        self._registry = registry
        self._default_agent_type = default_agent_type

    @classmethod
    def from_settings(cls, settings: SubagentSettings) -> "Orchestrator":
        store = WorktreeStore(settings.repo_path)
        inspector = ProcessInspector(store.root, spawn_markers=settings.spawn_markers)
        registry = build_registry(settings.agent_paths)
        return cls(store, inspector, registry, default_agent_type=settings.default_agent_type)

    @property
    def store(self) -> WorktreeStore:
        return self._store

    @property
    def inspector(self) -> ProcessInspector:
        return self._inspector

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def default_agent_type(self) -> str:
        return self._default_agent_type

    async def spawn_subagent(
        self,
        branch_name: str,
        prompt: str,
        *,
        base_branch: str | None = None,
        worktree_dir: str | None = None,
        agent_type: str | None = None,
        agent_options: AgentOptions | None = None,
    ) -> SpawnResult:
        """Create a worktree for ``branch_name`` and launch an agent inside it.

        If the launch fails the worktree is left in place for inspection and
        the error propagates; ``cleanup_worktree`` removes it.
        """

        agent_name = agent_type or self._default_agent_type
        launcher = self._registry.get(agent_name)

        logger.info(
            "Spawning subagent: branch=%s, worktree=%s, agent=%s",
            branch_name,
            worktree_dir or branch_name,
            agent_name,
        )
        worktree_path = await self._store.create_worktree(branch_name, base_branch, worktree_dir)

        try:
            await launcher.spawn(worktree_path, prompt, agent_options or AgentOptions())
        except Exception:
            logger.error(
                "Agent launch failed; worktree left in place for inspection: %s", worktree_path
            )
            raise

        return SpawnResult(worktree_path=worktree_path, branch_name=branch_name, agent_type=agent_name)

    async def cleanup_worktree(
        self,
        worktree_name_or_path: str,
        *,
        force: bool = False,
        remove_branch: bool = False,
        kill_agents: bool = False,
    ) -> CleanupResult:
        """Kill agents (optional), remove the worktree, then delete its branch (optional).

        Only the worktree removal is fatal. Signal failures are logged and a
        branch deletion failure is reported on the result; the worktree stays
        removed either way.
        """

        worktree_path = self._store.resolve_worktree_path(worktree_name_or_path)
        logger.info(
            "Cleaning up worktree: %s, remove_branch=%s, force=%s, kill_agents=%s",
            worktree_path,
            remove_branch,
            force,
            kill_agents,
        )

        result = CleanupResult(worktree_path=worktree_path)
        if remove_branch:
            record = await self._store.find_worktree(worktree_path)
            if record is not None and record.branch:
                result.branch_name = record.branch
            else:
                # Only the branch git reports for this worktree is ever deleted.
                result.branch_error = "worktree has no checked-out branch"
                logger.warning("Not deleting a branch for %s: no branch checked out there", worktree_path)

        if kill_agents:
            await self._kill_agents_in_worktree(worktree_path, force, result)

        await self._store.remove_worktree(worktree_path, force=force)

        if remove_branch and result.branch_name:
            try:
                await self._store.remove_branch(result.branch_name)
            except WorktreeError as exc:
                result.branch_error = str(exc)
                logger.error(
                    "Worktree %s removed but branch %s was not: %s",
                    worktree_path,
                    result.branch_name,
                    exc,
                )
            else:
                result.branch_removed = True

        return result

    async def list_worktrees(
        self,
        *,
        include_agents: bool = True,
        agent_filter: AgentFilter | None = None,
    ) -> list[WorktreeListing]:
        """Enumerate worktrees, optionally joined with a fresh agent snapshot.

        An agent belongs to a worktree when the worktree path is a substring of
        the agent's derived worktree path.
        """

        worktrees = await self._store.list_worktrees()
        if not include_agents:
            return [WorktreeListing(worktree=record) for record in worktrees]

        agents = await asyncio.to_thread(self._inspector.list_matching, agent_filter)
        listings = []
        for record in worktrees:
            worktree = str(record.path)
            matched = [
                agent
                for agent in agents
                if agent.worktree_path is not None and worktree in agent.worktree_path
            ]
            listings.append(WorktreeListing(worktree=record, agents=matched))
        return listings

    async def list_agents(self, agent_filter: AgentFilter | None = None) -> list[AgentProcessRecord]:
        return await asyncio.to_thread(self._inspector.list_matching, agent_filter)

    async def agent_summary(self, agent_filter: AgentFilter | None = None) -> AgentSummary:
        return await asyncio.to_thread(self._inspector.summarize, agent_filter)

    async def get_agent(self, pid: int) -> AgentProcessRecord | None:
        return await asyncio.to_thread(self._inspector.get_agent, pid)

    async def kill_agent(self, pid: int, *, force: bool = False) -> bool:
        return await asyncio.to_thread(self._inspector.signal, pid, force=force)

    async def describe_agents(self) -> list[AgentInfo]:
        return await self._registry.describe_all()

    async def _kill_agents_in_worktree(
        self,
        worktree_path: Path,
        force: bool,
        result: CleanupResult,
    ) -> None:
        candidates = await self.list_agents(AgentFilter.build(worktree_paths=[str(worktree_path)]))
        # The filter matches by substring; only exact worktree matches may be signalled.
        agents = [
            agent
            for agent in candidates
            if agent.worktree_path is not None and Path(agent.worktree_path) == worktree_path
        ]
        for agent in agents:
            if await self.kill_agent(agent.pid, force=force):
                result.killed_pids.append(agent.pid)
            else:
                result.failed_pids.append(agent.pid)
        logger.info(
            "Killed %d agent process(es) in worktree %s (%d failed)",
            len(result.killed_pids),
            worktree_path,
            len(result.failed_pids),
        )


__all__ = ["CleanupResult", "Orchestrator", "SpawnResult", "WorktreeListing"]
