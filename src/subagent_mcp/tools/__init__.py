"""Tool registration for the subagent worktree server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError

from ..agents import AgentOptions
from ..errors import SubagentError
from ..orchestrator import Orchestrator
from ..processes import AgentFilter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    spawn_subagent: Any
    cleanup_worktree: Any
    list_worktrees: Any
    list_agent_types: Any
    agent_summary: Any


def register_tools(server: FastMCP, *, orchestrator: Orchestrator) -> ToolHandles:
    """Register the subagent tools on the server."""

    async def _spawn_subagent(
        branch_name: str,
        prompt: str,
        base_branch: str | None = None,
        worktree_dir: str | None = None,
        agent_type: str | None = None,
        agent_options: AgentOptions | None = None,
        context: Context | None = None,
    ) -> str:
        """Create a worktree for a new branch and launch an agent inside it."""

        try:
            result = await orchestrator.spawn_subagent(
                branch_name,
                prompt,
                base_branch=base_branch,
                worktree_dir=worktree_dir,
                agent_type=agent_type,
                agent_options=agent_options,
            )
        except SubagentError as exc:
            await _emit_log(context, "error", "Spawn failed", extra={"branch": branch_name})
            raise ToolError(f"Failed to spawn subagent: {exc}") from exc

        await _emit_log(
            context,
            "info",
            "Spawned subagent",
            extra={
                "branch": branch_name,
                "worktree_path": str(result.worktree_path),
                "agent_type": result.agent_type,
            },
        )
        return result.message

    async def _cleanup_worktree(
        worktree_name_or_path: str,
        force: bool = False,
        remove_branch: bool = False,
        kill_agents: bool = False,
        context: Context | None = None,
    ) -> str:
        """Kill agents, remove a worktree, and optionally delete its branch."""

        try:
            result = await orchestrator.cleanup_worktree(
                worktree_name_or_path,
                force=force,
                remove_branch=remove_branch,
                kill_agents=kill_agents,
            )
        except SubagentError as exc:
            await _emit_log(
                context,
                "error",
                "Cleanup failed",
                extra={"worktree": worktree_name_or_path},
            )
            raise ToolError(f"Failed to cleanup worktree: {exc}") from exc

        await _emit_log(
            context,
            "warning" if result.branch_error else "info",
            "Cleaned up worktree",
            extra={
                "worktree_path": str(result.worktree_path),
                "killed": len(result.killed_pids),
                "branch_removed": result.branch_removed,
            },
        )
        return result.message

    async def _list_worktrees(
        include_agents: bool = True,
        only_our_agents: bool = True,
        only_waiting_agents: bool = False,
        agent_types: list[str] | None = None,
        worktree_paths: list[str] | None = None,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        """List git worktrees and, optionally, the agent processes running in them."""

        agent_filter = AgentFilter.build(
            only_our_agents=only_our_agents,
            only_waiting_agents=only_waiting_agents,
            agent_types=agent_types,
            worktree_paths=worktree_paths,
        )
        try:
            listings = await orchestrator.list_worktrees(
                include_agents=include_agents,
                agent_filter=agent_filter,
            )
        except SubagentError as exc:
            raise ToolError(f"Failed to list worktrees: {exc}") from exc

        await _emit_log(
            context,
            "debug",
            "Listed worktrees",
            extra={"count": len(listings), "include_agents": include_agents},
        )
        return [listing.to_dict() for listing in listings]

    async def _list_agent_types(context: Context | None = None) -> list[dict[str, Any]]:
        """Describe every registered agent kind, including availability and version."""

        infos = await orchestrator.describe_agents()
        await _emit_log(context, "debug", "Listed agent kinds", extra={"count": len(infos)})
        return [
            {**info.to_dict(), "default": info.name == orchestrator.default_agent_type}
            for info in infos
        ]

    async def _agent_summary(
        only_our_agents: bool = False,
        only_waiting_agents: bool = False,
        agent_types: list[str] | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Aggregate counters over the running agent processes."""

        summary = await orchestrator.agent_summary(
            AgentFilter.build(
                only_our_agents=only_our_agents,
                only_waiting_agents=only_waiting_agents,
                agent_types=agent_types,
            )
        )
        await _emit_log(
            context,
            "debug",
            "Summarized agents",
            extra={"total_agents": summary.total_agents},
        )
        return summary.to_dict()

    tool_spawn = server.tool(
        name="spawn_subagent",
        description=(
            "Spawn a new subagent with a git worktree for isolated development. Creates "
            "(or re-attaches) a branch and sibling worktree directory, then launches the "
            "agent there with the prompt on stdin. The worktree is kept if the launch fails."
        ),
    )(_spawn_subagent)

    tool_cleanup = server.tool(
        name="cleanup_worktree",
        description=(
            "Clean up a worktree and optionally delete the branch (destructive). Optionally "
            "terminates agent processes running in the worktree first."
        ),
        annotations={"destructiveHint": True, "idempotentHint": False},
    )(_cleanup_worktree)

    tool_list = server.tool(
        name="list_worktrees",
        description="List all git worktrees and their associated agents.",
        annotations={"readOnlyHint": True},
    )(_list_worktrees)

    tool_agent_types = server.tool(
        name="list_agent_types",
        description="List registered agent kinds with availability and version.",
        annotations={"readOnlyHint": True},
    )(_list_agent_types)

    tool_summary = server.tool(
        name="agent_summary",
        description="Summarize running agent processes: counts, CPU, memory, and kinds.",
        annotations={"readOnlyHint": True},
    )(_agent_summary)

    return ToolHandles(
        spawn_subagent=tool_spawn,
        cleanup_worktree=tool_cleanup,
        list_worktrees=tool_list,
        list_agent_types=tool_agent_types,
        agent_summary=tool_summary,
    )


async def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log locally and, when a request context is available, to the MCP client."""

    payload = extra or {}
    log_method = getattr(logger, level, logger.info)
    log_method(message, extra=payload)

    if context is None:
        return
    ctx_method = getattr(context, level, None)
    if callable(ctx_method):
        details = ", ".join(f"{key}={value}" for key, value in payload.items())
        await ctx_method(f"{message} ({details})" if details else message)


__all__ = ["register_tools", "ToolHandles"]
