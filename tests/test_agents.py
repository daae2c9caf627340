from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from subagent_mcp.agents import (
    AgentKindLoader,
    AgentLauncher,
    AgentOptions,
    AgentRegistry,
    CodexAgent,
    CommandLineAgent,
    CursorAgent,
    DefinedAgent,
    build_registry,
)
from subagent_mcp.agents.launcher import NOT_AVAILABLE, UNKNOWN_VERSION
from subagent_mcp.errors import (
    AgentProcessFailedError,
    AgentUnavailableError,
    UnknownAgentTypeError,
)
from subagent_mcp.utils import git_environment, sanitize_environment

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_agent_script(tmp_path: Path, body: str) -> Path:
    script = tmp_path / "fake-agent"
    script.write_text(
        "#!/bin/sh\n"
        'if [ "$1" = "--version" ]; then echo "fake-agent 1.2.3"; exit 0; fi\n'
        f"{body}\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script


def recording_agent(tmp_path: Path, exit_code: int = 0) -> CommandLineAgent:
    out = tmp_path / "out"
    out.mkdir()
    script = write_agent_script(
        tmp_path,
        f'printf "%s\\n" "$@" > "{out}/args.txt"\n'
        f'pwd > "{out}/cwd.txt"\n'
        f'cat > "{out}/prompt.txt"\n'
        "echo 'agent failure' >&2\n"
        f"exit {exit_code}",
    )
    return CommandLineAgent(name="fake", executable=str(script))


def test_spawn_passes_prompt_and_worktree(tmp_path: Path) -> None:
    agent = recording_agent(tmp_path)
    worktree = tmp_path / "wt"
    worktree.mkdir()

    asyncio.run(agent.spawn(worktree, "Implement the parser"))

    out = tmp_path / "out"
    assert (out / "prompt.txt").read_text(encoding="utf-8") == "Implement the parser\n"
    assert (out / "args.txt").read_text(encoding="utf-8").split() == [
        "--new-window",
        "--wait",
        str(worktree),
    ]
    assert Path((out / "cwd.txt").read_text(encoding="utf-8").strip()).resolve() == worktree.resolve()


def test_spawn_failure_raises_when_waiting(tmp_path: Path) -> None:
    agent = recording_agent(tmp_path, exit_code=3)
    worktree = tmp_path / "wt"
    worktree.mkdir()

    with pytest.raises(AgentProcessFailedError) as excinfo:
        asyncio.run(agent.spawn(worktree, "task"))

    assert excinfo.value.exit_code == 3
    assert "agent failure" in excinfo.value.stderr
    assert "exited with status 3" in str(excinfo.value)


def test_spawn_failure_is_logged_without_wait(tmp_path: Path) -> None:
    agent = recording_agent(tmp_path, exit_code=3)
    worktree = tmp_path / "wt"
    worktree.mkdir()

    asyncio.run(agent.spawn(worktree, "task", AgentOptions(wait=False)))

    assert (tmp_path / "out" / "args.txt").read_text(encoding="utf-8").split() == [
        "--new-window",
        str(worktree),
    ]


def test_spawn_detached_returns_before_exit(tmp_path: Path) -> None:
    marker = tmp_path / "finished.txt"
    script = write_agent_script(tmp_path, f'cat > /dev/null\nsleep 0.5\necho done > "{marker}"')
    agent = CommandLineAgent(name="slow", executable=str(script))
    worktree = tmp_path / "wt"
    worktree.mkdir()

    async def scenario() -> tuple[bool, bool]:
        await agent.spawn(worktree, "task", AgentOptions(detach=True))
        finished_on_return = marker.exists()
        for _ in range(100):
            if marker.exists():
                break
            await asyncio.sleep(0.05)
        return finished_on_return, marker.exists()

    finished_on_return, finished_later = asyncio.run(scenario())

    assert not finished_on_return
    assert finished_later


def test_spawn_missing_executable(tmp_path: Path) -> None:
    agent = CommandLineAgent(name="ghost", executable=str(tmp_path / "missing"))

    with pytest.raises(AgentUnavailableError):
        asyncio.run(agent.spawn(tmp_path, "task"))
    assert asyncio.run(agent.is_available()) is False


def test_describe_reports_version(tmp_path: Path) -> None:
    agent = CommandLineAgent(
        name="fake",
        executable=str(write_agent_script(tmp_path, "exit 0")),
        description="A fake agent",
    )

    info = asyncio.run(agent.describe())

    assert info.available
    assert info.version == "fake-agent 1.2.3"
    assert info.to_dict() == {
        "name": "fake",
        "available": True,
        "version": "fake-agent 1.2.3",
        "description": "A fake agent",
    }


def test_describe_unknown_version(tmp_path: Path) -> None:
    script = tmp_path / "mute-agent"
    script.write_text("#!/bin/sh\nexit 1\n", encoding="utf-8")
    script.chmod(0o755)

    info = asyncio.run(CommandLineAgent(name="mute", executable=str(script)).describe())

    assert info.available
    assert info.version == UNKNOWN_VERSION


def test_describe_unavailable(tmp_path: Path) -> None:
    info = asyncio.run(CommandLineAgent(name="ghost", executable=str(tmp_path / "missing")).describe())

    assert not info.available
    assert info.version == NOT_AVAILABLE


def test_build_command_flags_and_custom_options() -> None:
    options = AgentOptions(custom_options={"model": "gpt-5", "--retries": 3})

    cmd = CursorAgent().build_command(Path("/w/feature"), options)

    assert cmd == ["cursor-agent", "--new-window", "--wait", "--model", "gpt-5", "--retries", "3", "/w/feature"]
    bare = CursorAgent().build_command(Path("/w/feature"), AgentOptions(new_window=False, wait=False))
    assert bare == ["cursor-agent", "/w/feature"]


def test_codex_reads_prompt_from_stdin() -> None:
    cmd = CodexAgent().build_command(Path("/w/feature"), AgentOptions())

    assert cmd == ["codex", "exec", "-"]


def test_agent_options_reject_non_mapping() -> None:
    with pytest.raises(ValueError):
        AgentOptions(custom_options=["model"])


def test_builtin_agents_satisfy_protocol() -> None:
    assert isinstance(CursorAgent(), AgentLauncher)
    assert isinstance(CodexAgent(), AgentLauncher)


def test_registry_unknown_type_lists_known() -> None:
    registry = build_registry()

    with pytest.raises(UnknownAgentTypeError) as excinfo:
        registry.get("nonexistent")

    message = str(excinfo.value)
    assert "nonexistent" in message
    assert "codex, cursor-agent, cursor-cli" in message


def test_registry_replaces_by_name() -> None:
    registry = AgentRegistry([CursorAgent()])
    replacement = CommandLineAgent(name="cursor-agent", executable="other-binary")

    registry.register(replacement)

    assert len(registry) == 1
    assert registry.get("cursor-agent") is replacement


def write_definition(directory: Path, filename: str, content: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_text(content, encoding="utf-8")


def test_loader_later_paths_override(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    write_definition(first, "tool.yaml", "id: tool\nexecutable: tool-v1\n")
    write_definition(second, "tool.yml", "id: tool\nexecutable: tool-v2\nwait_flag: null\n")

    definitions = AgentKindLoader([first, second, tmp_path / "missing"]).load_all()

    assert definitions["tool"].executable == "tool-v2"
    assert definitions["tool"].wait_flag is None
    assert definitions["tool"].new_window_flag == "--new-window"


def test_loader_reports_invalid_definitions(tmp_path: Path) -> None:
    write_definition(tmp_path, "broken.yaml", "id: broken\n")
    write_definition(tmp_path, "garbled.yaml", "id: [unclosed\n")
    loader = AgentKindLoader([tmp_path])

    definitions = loader.load_all()

    assert definitions == {}
    assert len(loader.errors) == 2
    assert any("broken.yaml" in error for error in loader.errors)
    assert any("garbled.yaml" in error for error in loader.errors)


def test_loader_keeps_valid_definitions_beside_broken_ones(tmp_path: Path) -> None:
    write_definition(tmp_path, "helper.yaml", "id: helper\nexecutable: helper-bin\n")
    write_definition(tmp_path, "zz-broken.yaml", "executable: nothing\n")
    loader = AgentKindLoader([tmp_path])

    definitions = loader.load_all()

    assert list(definitions) == ["helper"]
    assert len(loader.errors) == 1
    assert "zz-broken.yaml" in loader.errors[0]



def test_defined_agent_command_line(tmp_path: Path) -> None:
    write_definition(
        tmp_path,
        "runner.yaml",
        "id: runner\nexecutable: runner-bin\nnew_window_flag: null\n"
        "base_args: [run]\ntrailing_args: [--stdin]\npass_worktree_arg: false\n",
    )
    definition = AgentKindLoader([tmp_path]).load_all()["runner"]

    cmd = DefinedAgent(definition).build_command(Path("/w"), AgentOptions())

    assert cmd == ["runner-bin", "run", "--wait", "--stdin"]


def test_build_registry_includes_bundled_definitions() -> None:
    registry = build_registry([REPO_ROOT / "agents"])

    assert {"cursor-agent", "cursor-cli", "codex", "aider"} <= set(registry.names())
    aider = registry.get("aider")
    assert isinstance(aider, DefinedAgent)
    assert aider.build_command(Path("/w"), AgentOptions()) == ["aider", "--yes-always"]


def test_build_registry_ignores_broken_definitions(tmp_path: Path) -> None:
    write_definition(tmp_path, "broken.yaml", "executable: nothing\n")

    registry = build_registry([tmp_path])

    assert registry.names() == ["cursor-agent", "cursor-cli", "codex"]


def test_sanitize_environment_strips_virtualenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")

    env = sanitize_environment({"EXTRA": "1"})

    assert "PYTHONPATH" not in env
    assert env["EXTRA"] == "1"


def test_git_environment_forces_c_locale(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LANG", "de_DE.UTF-8")
    monkeypatch.setenv("VIRTUAL_ENV", "/venv")

    env = git_environment()

    assert env["LANG"] == "C"
    assert env["LC_ALL"] == "C"
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert "VIRTUAL_ENV" not in env


def test_build_registry_keeps_valid_definitions_beside_broken_ones(tmp_path: Path) -> None:
    write_definition(tmp_path, "aa-broken.yaml", "id: [unclosed\n")
    write_definition(tmp_path, "helper.yaml", "id: helper\nexecutable: helper-bin\n")
    write_definition(tmp_path, "zz-broken.yaml", "executable: nothing\n")

    registry = build_registry([tmp_path])

    assert "helper" in registry.names()
    assert {"cursor-agent", "cursor-cli", "codex"} <= set(registry.names())
