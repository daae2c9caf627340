"""Thin wrapper around the git executable."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import VcsQueryError
from ..utils import git_environment


@dataclass(slots=True)
class GitResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        return (self.stderr.strip() or self.stdout.strip() or f"exit code {self.returncode}")


def git_executable() -> str:
    binary = shutil.which("git")
    if binary is None:
        raise VcsQueryError("git executable not found on PATH")
    return binary


def run_git(cwd: Path, *args: str) -> GitResult:
    """Run ``git`` in ``cwd`` and capture its output. Blocks until git exits."""

    cmd = [git_executable(), *args]
    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=git_environment(),
            check=False,
        )
    except OSError as exc:
        raise VcsQueryError(f"Failed to execute git {' '.join(args)}: {exc}") from exc
    return GitResult(
        args=tuple(cmd),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


__all__ = ["GitResult", "git_executable", "run_git"]
