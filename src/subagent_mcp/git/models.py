"""Worktree records parsed from git metadata."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

_BRANCH_PREFIX = "refs/heads/"


@dataclass(slots=True, frozen=True)
class WorktreeRecord:
    path: Path
    branch: str | None = None
    commit: str | None = None
    detached: bool = False
    locked: bool = False
    bare: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "branch": self.branch,
            "commit": self.commit,
            "detached": self.detached,
            "locked": self.locked,
            "bare": self.bare,
        }


def parse_worktree_porcelain(output: str) -> list[WorktreeRecord]:
    """Parse ``git worktree list --porcelain`` output.

    Each stanza starts with a ``worktree <path>`` line; records keep the order
    git reports them in.
    """

    records: list[WorktreeRecord] = []
    current: dict[str, Any] | None = None

    for line in output.splitlines():
        if line.startswith("worktree "):
            if current is not None:
                records.append(WorktreeRecord(**current))
            current = {"path": Path(line[len("worktree "):])}
            continue
        if current is None:
            continue
        if line.startswith("HEAD "):
            current["commit"] = line[len("HEAD "):]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            current["branch"] = ref[len(_BRANCH_PREFIX):] if ref.startswith(_BRANCH_PREFIX) else ref
        elif line == "detached":
            current["detached"] = True
        elif line == "bare":
            current["bare"] = True
        elif line == "locked" or line.startswith("locked "):
            current["locked"] = True

    if current is not None:
        records.append(WorktreeRecord(**current))
    return records


__all__ = ["WorktreeRecord", "parse_worktree_porcelain"]
