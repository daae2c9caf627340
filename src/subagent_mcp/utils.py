"""Environment helpers for git and agent child processes."""

from __future__ import annotations

import os
from typing import Mapping

# Set by the interpreter running this server; agents and git hooks must not inherit them.
_INTERPRETER_VARS = frozenset({"PYTHONHOME", "PYTHONPATH", "VIRTUAL_ENV", "PIP_RESPECT_VIRTUALENV"})

# git's messages are matched on text, so they must not be localized.
GIT_ENVIRONMENT: dict[str, str] = {
    "LC_ALL": "C",
    "LANG": "C",
    "GIT_TERMINAL_PROMPT": "0",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Copy ``os.environ`` without interpreter variables, then apply ``additional``."""

    env = {key: value for key, value in os.environ.items() if key not in _INTERPRETER_VARS}
    env.update(additional or {})
    return env


def git_environment() -> dict[str, str]:
    """Environment for git: sanitized, C locale, never prompting for credentials."""

    return sanitize_environment(GIT_ENVIRONMENT)


__all__ = ["GIT_ENVIRONMENT", "git_environment", "sanitize_environment"]
