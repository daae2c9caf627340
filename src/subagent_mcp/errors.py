"""Exception hierarchy shared by the worktree, process, and agent layers."""

from __future__ import annotations

from typing import Iterable


class SubagentError(RuntimeError):
    """Base class for failures surfaced to MCP callers."""


class WorktreeError(SubagentError):
    """Base class for git worktree and branch failures."""


class NotAGitRepositoryError(WorktreeError):
    """Raised when the configured path is not inside a git repository."""


class NoParentDirectoryError(WorktreeError):
    """Raised when the repository root has no parent to host worktrees."""


class InvalidBranchNameError(WorktreeError):
    """Raised when a branch name is empty or rejected by git."""


class BaseBranchNotFoundError(WorktreeError):
    """Raised when the requested base branch exists neither locally nor remotely."""


class VcsQueryError(WorktreeError):
    """Raised when git cannot be queried or a git command fails unexpectedly."""


class WorktreeNotFoundError(WorktreeError):
    """Raised when git does not know the path as a worktree."""


class RemovalBlockedError(WorktreeError):
    """Raised when git refuses to remove a worktree."""


class BranchNotFoundError(WorktreeError):
    """Raised when a branch to delete does not exist."""


class BranchCheckedOutError(WorktreeError):
    """Raised when a branch is checked out in another worktree."""


class AgentError(SubagentError):
    """Base class for agent launch failures."""


class AgentUnavailableError(AgentError):
    """Raised when the agent executable cannot be found on PATH."""


class AgentProcessFailedError(AgentError):
    """Raised when a waited-on agent process exits with a non-zero status."""

    def __init__(self, agent_name: str, exit_code: int | None, stderr: str = "") -> None:
        self.agent_name = agent_name
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"{agent_name} exited with status {exit_code}"
        detail = stderr.strip()
        if detail:
            message = f"{message}: {detail[:500]}"
        super().__init__(message)


class UnknownAgentTypeError(AgentError):
    """Raised when no launcher is registered under the requested name."""

    def __init__(self, agent_type: str, known: Iterable[str] = ()) -> None:
        self.agent_type = agent_type
        self.known = tuple(sorted(known))
        valid = ", ".join(self.known) or "none registered"
        super().__init__(f"Unknown agent type '{agent_type}'. Valid agent types: {valid}")


__all__ = [
    "AgentError",
    "AgentProcessFailedError",
    "AgentUnavailableError",
    "BaseBranchNotFoundError",
    "BranchCheckedOutError",
    "BranchNotFoundError",
    "InvalidBranchNameError",
    "NoParentDirectoryError",
    "NotAGitRepositoryError",
    "RemovalBlockedError",
    "SubagentError",
    "UnknownAgentTypeError",
    "VcsQueryError",
    "WorktreeError",
    "WorktreeNotFoundError",
]
