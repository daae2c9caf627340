"""Classify entries of the OS process table as coding agents."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import psutil

from .models import AgentFilter, AgentProcessRecord, AgentSummary

logger = logging.getLogger(__name__)

# Matched case-insensitively as substrings of the executable name. This is a
# heuristic: unrelated binaries such as "vscode-helper" also match.
AGENT_PROCESS_NAMES: tuple[str, ...] = (
    "cursor",
    "cursor-agent",
    "cursor-cli",
    "code",
    "code-cli",
    "vim",
    "nvim",
    "emacs",
    "sublime",
    "atom",
    "brackets",
    "webstorm",
    "intellij",
    "pycharm",
    "clion",
    "rider",
    "goland",
    "phpstorm",
    "rubymine",
    "datagrip",
    "android-studio",
    "fleet",
    "zed",
    "lapce",
    "helix",
    "kakoune",
    "codex",
    "aider",
)

# Command-line fragments this server passes when launching agents.
SPAWN_MARKERS: tuple[str, ...] = (
    "--new-window",
    "--wait",
    "cursor-cli",
    "code --new-window",
)

_PROCESS_ATTRS = ["pid", "name", "cmdline", "cwd", "cpu_percent", "memory_info", "create_time"]


def stdin_is_terminal(pid: int) -> bool:
    """Best-effort check whether a process reads stdin from a terminal device."""

    if not sys.platform.startswith("linux"):
        return False
    try:
        target = os.readlink(f"/proc/{pid}/fd/0")
    except OSError:
        return False
    return "pts" in target or "tty" in target


class ProcessInspector:
    """Point-in-time views of the process table, classified relative to one repository.

    Nothing is cached between calls except the most recent snapshot, and
    records are rebuilt from it on every query.
    """

    def __init__(
        self,
        repo_path: Path,
        *,
        agent_names: Sequence[str] = AGENT_PROCESS_NAMES,
        spawn_markers: Iterable[str] = (),
        process_iter: Callable[..., Iterable[Any]] | None = None,
        process_factory: Callable[[int], Any] | None = None,
        stdin_check: Callable[[int], bool] | None = None,
    ) -> None:
        self._repo_path = Path(repo_path).resolve()
        self._agent_names = tuple(name.lower() for name in agent_names)
        self._spawn_markers = (*SPAWN_MARKERS, *spawn_markers)
        self._process_iter = process_iter or psutil.process_iter
        self._process_factory = process_factory or psutil.Process
        self._stdin_check = stdin_check or stdin_is_terminal
        self._snapshot: list[tuple[int, dict[str, Any]]] = []

    @property
    def repo_path(self) -> Path:
        return self._repo_path

    def snapshot(self) -> int:
        """Re-read the process table and return the number of entries seen."""

        entries: list[tuple[int, dict[str, Any]]] = []
        for process in self._process_iter(attrs=_PROCESS_ATTRS, ad_value=None):
            info = dict(getattr(process, "info", None) or {})
            pid = info.get("pid", getattr(process, "pid", None))
            if pid is None:
                continue
            entries.append((int(pid), info))
        self._snapshot = entries
        logger.debug("Process snapshot refreshed: %d processes", len(entries))
        return len(entries)

    def is_agent_process(self, name: str) -> bool:
        lowered = (name or "").lower()
        return any(agent_name in lowered for agent_name in self._agent_names)

    def classify(self, pid: int, info: dict[str, Any]) -> AgentProcessRecord:
        cmdline = tuple(info.get("cmdline") or ())
        cwd = info.get("cwd") or ""
        memory = info.get("memory_info")
        worktree_path = self.find_associated_worktree(cwd)

        return AgentProcessRecord(
            pid=pid,
            name=info.get("name") or "",
            cmdline=cmdline,
            cwd=cwd,
            waiting_for_input=self._waiting_for_input(pid),
            cpu_percent=float(info.get("cpu_percent") or 0.0),
            memory_bytes=int(getattr(memory, "rss", 0) or 0),
            started_at=float(info.get("create_time") or 0.0),
            spawned_by_us=worktree_path is not None and self._has_spawn_marker(cmdline),
            worktree_path=worktree_path,
        )

    def find_associated_worktree(self, cwd: str) -> str | None:
        """Return the sibling directory of the repository that contains ``cwd``."""

        if not cwd:
            return None
        parent = self._repo_path.parent
        if parent == self._repo_path:
            return None
        try:
            relative = Path(cwd).relative_to(parent)
        except ValueError:
            return None
        if not relative.parts:
            return None
        sibling = parent / relative.parts[0]
        if sibling == self._repo_path:
            return None
        return str(sibling)

    def list_matching(
        self,
        agent_filter: AgentFilter | None = None,
        *,
        refresh: bool = True,
    ) -> list[AgentProcessRecord]:
        """Return agent processes passing ``agent_filter``, sorted by PID."""

        if refresh:
            self.snapshot()
        criteria = agent_filter or AgentFilter()

        records = [
            record
            for record in self._classified_agents()
            if criteria.matches(record)
        ]
        records.sort(key=lambda record: record.pid)
        logger.info("Found %d running agent processes matching criteria", len(records))
        return records

    def get_agent(self, pid: int) -> AgentProcessRecord | None:
        self.snapshot()
        for record in self._classified_agents():
            if record.pid == pid:
                return record
        return None

    def signal(self, pid: int, *, force: bool = False) -> bool:
        """Send SIGTERM (or SIGKILL when ``force``); report failure as ``False``."""

        signal_name = "SIGKILL" if force else "SIGTERM"
        if pid <= 0:
            logger.warning("Refusing to send %s to invalid pid %s", signal_name, pid)
            return False
        try:
            process = self._process_factory(pid)
            if force:
                process.kill()
            else:
                process.terminate()
        except (psutil.Error, ValueError) as exc:
            logger.warning("Failed to send %s to process %s: %s", signal_name, pid, exc)
            return False
        logger.info("Successfully sent %s to process %s", signal_name, pid)
        return True

    def summarize(self, agent_filter: AgentFilter | None = None) -> AgentSummary:
        return AgentSummary.from_records(self.list_matching(agent_filter))

    def _classified_agents(self) -> Iterable[AgentProcessRecord]:
        for pid, info in self._snapshot:
            if self.is_agent_process(info.get("name") or ""):
                yield self.classify(pid, info)

    def _has_spawn_marker(self, cmdline: Sequence[str]) -> bool:
        joined = " ".join(cmdline)
        return any(marker in joined for marker in self._spawn_markers)

    def _waiting_for_input(self, pid: int) -> bool:
        try:
            return bool(self._stdin_check(pid))
        except OSError:
            return False


__all__ = ["AGENT_PROCESS_NAMES", "SPAWN_MARKERS", "ProcessInspector", "stdin_is_terminal"]
