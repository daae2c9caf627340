"""Git worktree store and helpers."""

from .commands import GitResult, run_git
from .models import WorktreeRecord, parse_worktree_porcelain
from .worktrees import WorktreeStore

__all__ = [
    "GitResult",
    "WorktreeRecord",
    "WorktreeStore",
    "parse_worktree_porcelain",
    "run_git",
]
