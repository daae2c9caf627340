"""Git worktree lifecycle management for subagents."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..errors import (
    BaseBranchNotFoundError,
    BranchCheckedOutError,
    BranchNotFoundError,
    InvalidBranchNameError,
    NoParentDirectoryError,
    NotAGitRepositoryError,
    RemovalBlockedError,
    VcsQueryError,
    WorktreeNotFoundError,
)
from .commands import GitResult, run_git
from .models import WorktreeRecord, parse_worktree_porcelain

logger = logging.getLogger(__name__)

_CHECKED_OUT_MARKERS = (
    "already checked out",
    "already used by worktree",
    "checked out at",
    "used by worktree",
)


class WorktreeStore:
    """Create, enumerate, and remove worktree/branch pairs of one repository.

    New worktrees are placed next to the repository: a repository at
    ``/src/app`` gets its worktrees under ``/src/<dir>``. The store keeps no
    state besides the repository root; every query goes back to git. Public
    coroutines run git on a worker thread so the event loop never blocks.
    """

    def __init__(self, repo_path: Path) -> None:
        self._root = self._validate_repository(Path(repo_path))

    @staticmethod
    def _validate_repository(path: Path) -> Path:
        candidate = path.expanduser()
        if not candidate.is_dir():
            raise NotAGitRepositoryError(f"Path is not a git repository: {candidate}")
        try:
            result = run_git(candidate, "rev-parse", "--show-toplevel")
        except VcsQueryError as exc:
            raise NotAGitRepositoryError(f"Path is not a git repository: {candidate} ({exc})") from exc
        toplevel = result.stdout.strip()
        if not result.ok or not toplevel:
            raise NotAGitRepositoryError(
                f"Path is not a git repository: {candidate} ({result.error_text})"
            )
        return Path(toplevel).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _git(self, *args: str) -> GitResult:
        return run_git(self._root, *args)

    # Public coroutine API -------------------------------------------------

    async def create_worktree(
        self,
        branch_name: str,
        base_branch: str | None = None,
        worktree_dir: str | None = None,
    ) -> Path:
        """Create (or re-attach) a worktree for ``branch_name`` and return its path.

        An existing local branch is checked out instead of being recreated,
        and an existing target directory is returned untouched.
        """

        return await asyncio.to_thread(
            self._create_worktree_blocking, branch_name, base_branch, worktree_dir
        )

    async def list_worktrees(self) -> list[WorktreeRecord]:
        return await asyncio.to_thread(self._list_worktrees_blocking)

    async def find_worktree(self, path: Path) -> WorktreeRecord | None:
        target = Path(path).resolve()
        for record in await self.list_worktrees():
            if record.path.resolve() == target:
                return record
        return None

    async def remove_worktree(self, worktree_path: Path, *, force: bool = False) -> None:
        """Unregister and delete a worktree directory. The branch is kept."""

        await asyncio.to_thread(self._remove_worktree_blocking, Path(worktree_path), force)

    async def remove_branch(self, branch_name: str) -> None:
        await asyncio.to_thread(self._remove_branch_blocking, branch_name)

    async def branch_exists(self, branch_name: str) -> bool:
        return await asyncio.to_thread(self._branch_exists, branch_name)

    async def current_branch(self) -> str:
        return await asyncio.to_thread(self._current_branch_blocking)

    def resolve_worktree_path(self, name_or_path: str | Path) -> Path:
        """Map a bare worktree name to its sibling directory; resolve anything else."""

        if not str(name_or_path).strip():
            raise WorktreeNotFoundError("Worktree name or path must not be empty")
        candidate = Path(name_or_path).expanduser()
        bare_name = len(candidate.parts) == 1 and candidate.name != ".."
        if not candidate.is_absolute() and bare_name:
            return self._parent_dir() / candidate
        return candidate.resolve()

    # Blocking implementations ---------------------------------------------

    def _create_worktree_blocking(
        self,
        branch_name: str,
        base_branch: str | None,
        worktree_dir: str | None,
    ) -> Path:
        branch_name = self._validate_branch_name(branch_name)

        base_commit: str | None = None
        if base_branch is not None and base_branch.strip():
            base_name = base_branch.strip()
            base_commit = self._resolve_base_commit(base_name)
        else:
            base_name = None

        reuse_branch = self._branch_exists(branch_name)
        if reuse_branch:
            logger.warning("Branch '%s' already exists, checking it out instead", branch_name)

        worktree_path = self._parent_dir() / (worktree_dir or branch_name)
        if worktree_path.exists():
            logger.warning("Worktree directory already exists: %s", worktree_path)
            return worktree_path

        if reuse_branch:
            result = self._git("worktree", "add", str(worktree_path), branch_name)
        else:
            if base_name is None:
                base_name = self._current_branch_blocking()
                base_commit = self._resolve_base_commit(base_name, missing=VcsQueryError)
            logger.info("Creating branch '%s' from base branch '%s'", branch_name, base_name)
            result = self._git("worktree", "add", "-b", branch_name, str(worktree_path), base_commit)
            if not result.ok and self._branch_exists(branch_name):
                # git creates the branch before populating the directory.
                self._git("branch", "-D", branch_name)

        if not result.ok:
            message = f"Git worktree add failed: {result.error_text}"
            if any(marker in result.stderr.lower() for marker in _CHECKED_OUT_MARKERS):
                raise BranchCheckedOutError(message)
            raise VcsQueryError(message)

        logger.info("Successfully created worktree at: %s", worktree_path)
        return worktree_path

    def _list_worktrees_blocking(self) -> list[WorktreeRecord]:
        result = self._git("worktree", "list", "--porcelain")
        if not result.ok:
            raise VcsQueryError(f"Git worktree list failed: {result.error_text}")
        return parse_worktree_porcelain(result.stdout)

    def _remove_worktree_blocking(self, worktree_path: Path, force: bool) -> None:
        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        args.append(str(worktree_path))
        result = self._git(*args)
        if not result.ok:
            message = f"Git worktree remove failed for {worktree_path}: {result.error_text}"
            if "is not a working tree" in result.stderr:
                raise WorktreeNotFoundError(message)
            raise RemovalBlockedError(message)
        logger.info("Successfully removed worktree: %s", worktree_path)

    def _remove_branch_blocking(self, branch_name: str) -> None:
        result = self._git("branch", "-D", branch_name)
        if not result.ok:
            stderr = result.stderr.lower()
            message = f"Failed to delete branch '{branch_name}': {result.error_text}"
            if "not found" in stderr:
                raise BranchNotFoundError(message)
            if any(marker in stderr for marker in _CHECKED_OUT_MARKERS):
                raise BranchCheckedOutError(message)
            raise VcsQueryError(message)
        logger.info("Deleted branch: %s", branch_name)

    def _validate_branch_name(self, branch_name: str) -> str:
        name = (branch_name or "").strip()
        if not name:
            raise InvalidBranchNameError("Branch name must not be empty")
        if name.startswith("-"):
            raise InvalidBranchNameError(f"Invalid branch name '{name}'")
        result = self._git("check-ref-format", "--branch", name)
        if not result.ok:
            raise InvalidBranchNameError(f"Invalid branch name '{name}': {result.error_text}")
        return name

    def _branch_exists(self, branch_name: str) -> bool:
        return self._git("show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}").ok

    def _resolve_base_commit(
        self,
        branch_name: str,
        *,
        missing: type[Exception] = BaseBranchNotFoundError,
    ) -> str:
        for ref in (f"refs/heads/{branch_name}", f"refs/remotes/{branch_name}"):
            result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
            if result.ok and result.stdout.strip():
                return result.stdout.strip()
        raise missing(f"Branch '{branch_name}' not found")

    def _current_branch_blocking(self) -> str:
        result = self._git("symbolic-ref", "--quiet", "--short", "HEAD")
        name = result.stdout.strip()
        if not result.ok or not name:
            raise VcsQueryError("Could not determine current branch name (HEAD is detached)")
        return name

    def _parent_dir(self) -> Path:
        parent = self._root.parent
        if parent == self._root:
            raise NoParentDirectoryError(f"Repository has no parent directory: {self._root}")
        return parent


__all__ = ["WorktreeStore"]
