"""Agent kinds shipped with the server."""

from __future__ import annotations

from .launcher import CommandLineAgent

DEFAULT_AGENT_TYPE = "cursor-agent"


class CursorAgent(CommandLineAgent):
    name = "cursor-agent"
    executable = "cursor-agent"
    description = "Cursor Agent - AI-powered coding agent CLI"


class CursorCliAgent(CommandLineAgent):
    name = "cursor-cli"
    executable = "cursor-cli"
    description = "Cursor CLI - AI-powered code editor"


class CodexAgent(CommandLineAgent):
    """Runs ``codex exec`` non-interactively; ``-`` makes codex read the prompt from stdin."""

    name = "codex"
    executable = "codex"
    description = "Codex CLI - OpenAI coding agent"
    new_window_flag = None
    wait_flag = None
    base_args = ("exec",)
    trailing_args = ("-",)
    pass_worktree_arg = False


BUILTIN_AGENTS: tuple[type[CommandLineAgent], ...] = (CursorAgent, CursorCliAgent, CodexAgent)

__all__ = ["BUILTIN_AGENTS", "CodexAgent", "CursorAgent", "CursorCliAgent", "DEFAULT_AGENT_TYPE"]
