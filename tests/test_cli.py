from __future__ import annotations

import argparse
import importlib.util
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from subagent_mcp.agents import AgentInfo
from subagent_mcp.git import WorktreeRecord
from subagent_mcp.orchestrator import WorktreeListing
from subagent_mcp.processes import AgentProcessRecord, AgentSummary

REPO_ROOT = Path(__file__).resolve().parents[1]


def load_diag(module_name: str):
    module_path = REPO_ROOT / "scripts" / "subagent_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def agent_record(pid: int, *, waiting: bool = False) -> AgentProcessRecord:
    return AgentProcessRecord(
        pid=pid,
        name="cursor-agent",
        cmdline=("cursor-agent", "--wait"),
        cwd="/src/feature-x",
        waiting_for_input=waiting,
        cpu_percent=3.0,
        memory_bytes=4096,
        started_at=1_700_000_000.0,
        spawned_by_us=True,
        worktree_path="/src/feature-x",
    )


class StubOrchestrator:
    default_agent_type = "cursor-agent"

    def __init__(self) -> None:
        self.filters = []

    async def list_worktrees(self, *, include_agents: bool = True, agent_filter=None):
        main = WorktreeRecord(path=Path("/src/app"), branch="main")
        feature = WorktreeRecord(path=Path("/src/feature-x"), branch="feature-x")
        if not include_agents:
            return [WorktreeListing(worktree=main), WorktreeListing(worktree=feature)]
        return [
            WorktreeListing(worktree=main, agents=[]),
            WorktreeListing(worktree=feature, agents=[agent_record(7)]),
        ]

    async def list_agents(self, agent_filter=None):
        self.filters.append(agent_filter)
        return [agent_record(7, waiting=True)]

    async def agent_summary(self, agent_filter=None):
        return AgentSummary.from_records([agent_record(7), agent_record(8, waiting=True)])

    async def get_agent(self, pid: int):
        return agent_record(pid) if pid == 7 else None

    async def describe_agents(self):
        return [AgentInfo(name="cursor-agent", available=False, version="Not available", description="")]


def patch_orchestrator(monkeypatch, diag) -> StubOrchestrator:
    stub = StubOrchestrator()
    monkeypatch.setattr(diag, "load_orchestrator", lambda _settings: stub)
    return stub


def test_worktrees_text_output(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_worktrees")
    patch_orchestrator(monkeypatch, diag)

    diag.main(["worktrees"])

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "- /src/app (branch: main) - 0 agent(s)",
        "- /src/feature-x (branch: feature-x) - 1 agent(s)",
    ]


def test_worktrees_json_without_agents(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_worktrees_json")
    patch_orchestrator(monkeypatch, diag)

    diag.main(["worktrees", "--json", "--no-agents"])

    payload = json.loads(capsys.readouterr().out)
    assert [entry["branch"] for entry in payload] == ["main", "feature-x"]
    assert all("agents" not in entry for entry in payload)


def test_agents_builds_filter(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_agents")
    stub = patch_orchestrator(monkeypatch, diag)

    diag.cmd_agents(argparse.Namespace(all=True, waiting=True, type=["cursor-agent"]))

    payload = json.loads(capsys.readouterr().out)
    assert payload[0]["pid"] == 7
    assert payload[0]["waiting_for_input"] is True
    agent_filter = stub.filters[0]
    assert agent_filter.only_our_agents is False
    assert agent_filter.only_waiting_agents is True
    assert agent_filter.agent_types == ("cursor-agent",)


def test_summary(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_summary")
    patch_orchestrator(monkeypatch, diag)

    diag.main(["summary"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["total_agents"] == 2
    assert payload["waiting_for_input"] == 1
    assert payload["total_memory_bytes"] == 8192


def test_agent_types_marks_default(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_types")
    patch_orchestrator(monkeypatch, diag)

    diag.main(["agent-types"])

    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {
            "name": "cursor-agent",
            "available": False,
            "version": "Not available",
            "description": "",
            "default": True,
        }
    ]


def test_agent_by_pid(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_agent")
    patch_orchestrator(monkeypatch, diag)

    diag.main(["agent", "7"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["pid"] == 7
    assert payload["worktree_path"] == "/src/feature-x"


def test_agent_by_pid_missing(monkeypatch, capsys) -> None:
    diag = load_diag("subagent_diag_agent_missing")
    patch_orchestrator(monkeypatch, diag)

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["agent", "99"])

    assert excinfo.value.code == 1
    assert "No agent process with pid 99" in capsys.readouterr().out


def test_cli_reports_missing_repository(tmp_path: Path) -> None:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT / "src") + os.pathsep + env.get("PYTHONPATH", "")
    env["SUBAGENT_REPO_PATH"] = str(tmp_path / "missing")

    process = subprocess.run(
        [sys.executable, str(REPO_ROOT / "scripts" / "subagent_diag.py"), "worktrees"],
        cwd=str(tmp_path),
        capture_output=True,
        text=True,
        env=env,
    )

    assert process.returncode == 1
    assert "Repository unavailable" in process.stdout
