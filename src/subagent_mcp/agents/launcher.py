"""Launch agent binaries inside a worktree."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..errors import AgentProcessFailedError, AgentUnavailableError
from ..utils import sanitize_environment
from .models import AgentInfo, AgentKindDefinition, AgentOptions

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "Unknown version"
NOT_AVAILABLE = "Not available"
VERSION_QUERY_TIMEOUT = 10.0

# Detached monitors are only referenced here; the event loop keeps weak refs.
_BACKGROUND_TASKS: set[asyncio.Task[None]] = set()


@runtime_checkable
class AgentLauncher(Protocol):
    """Capabilities every registered agent kind provides."""

    name: str

    async def is_available(self) -> bool:
        ...

    async def spawn(self, worktree_path: Path, prompt: str, options: AgentOptions | None = None) -> None:
        ...

    async def describe(self) -> AgentInfo:
        ...


class CommandLineAgent:
    """Agent launched as ``<executable> [flags] [--key value ...] [worktree]``.

    The prompt is written to the process's stdin right after launch. Class
    attributes describe the command line; subclasses override them per
    agent family.
    """

    name: str = ""
    executable: str = ""
    description: str = ""
    new_window_flag: str | None = "--new-window"
    wait_flag: str | None = "--wait"
    base_args: tuple[str, ...] = ()
    trailing_args: tuple[str, ...] = ()
    pass_worktree_arg: bool = True

    def __init__(
        self,
        name: str | None = None,
        executable: str | None = None,
        description: str | None = None,
    ) -> None:
        self.name = name or type(self).name
        if not self.name:
            raise ValueError("Agent name must not be empty")
        self.executable = executable or type(self).executable or self.name
        self.description = description if description is not None else type(self).description

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, executable={self.executable!r})"

    def resolve_executable(self) -> str | None:
        return shutil.which(self.executable)

    async def is_available(self) -> bool:
        return self.resolve_executable() is not None

    def build_command(
        self,
        worktree_path: Path,
        options: AgentOptions,
        *,
        executable: str | None = None,
    ) -> list[str]:
        cmd = [executable or self.executable, *self.base_args]
        if options.new_window and self.new_window_flag:
            cmd.append(self.new_window_flag)
        if options.wait and self.wait_flag:
            cmd.append(self.wait_flag)
        for key, value in options.custom_options.items():
            cmd.extend([f"--{key.lstrip('-')}", value])
        if self.pass_worktree_arg:
            cmd.append(str(worktree_path))
        cmd.extend(self.trailing_args)
        return cmd

    async def spawn(
        self,
        worktree_path: Path,
        prompt: str,
        options: AgentOptions | None = None,
    ) -> None:
        """Start the agent in ``worktree_path`` and feed it ``prompt``.

        With ``detach`` the call returns once the process has started and its
        exit status is only logged. Otherwise the call waits for the exit;
        a non-zero status raises ``AgentProcessFailedError`` when ``wait`` is
        set and is logged when it is not.
        """

        options = options or AgentOptions()
        executable = self.resolve_executable()
        if executable is None:
            raise AgentUnavailableError(f"{self.executable} is not available in PATH")

        cmd = self.build_command(worktree_path, options, executable=executable)
        logger.info("Spawning %s in directory: %s", self.name, worktree_path)
        logger.debug("Initial prompt: %s", prompt)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(worktree_path),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise AgentProcessFailedError(self.name, None, f"failed to start: {exc}") from exc

        await self._deliver_prompt(process, prompt)

        if options.detach:
            task = asyncio.create_task(
                self._monitor_detached(process),
                name=f"{self.name}-monitor-{process.pid}",
            )
            _BACKGROUND_TASKS.add(task)
            task.add_done_callback(_BACKGROUND_TASKS.discard)
            logger.info("Spawned detached %s subagent (pid %s)", self.name, process.pid)
            return

        _, stderr_bytes = await process.communicate()
        returncode = process.returncode
        if returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace")
            if options.wait:
                raise AgentProcessFailedError(self.name, returncode, stderr)
            logger.warning("%s process exited with non-zero status: %s", self.name, returncode)
            return
        logger.info("%s process completed successfully", self.name)

    async def describe(self) -> AgentInfo:
        executable = self.resolve_executable()
        if executable is None:
            version = NOT_AVAILABLE
        else:
            version = await self._query_version(executable)
        return AgentInfo(
            name=self.name,
            available=executable is not None,
            version=version,
            description=self.description,
        )

    async def _deliver_prompt(self, process: asyncio.subprocess.Process, prompt: str) -> None:
        if process.stdin is None:
            return
        try:
            process.stdin.write(f"{prompt}\n".encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.error("Failed to write prompt to %s stdin: %s", self.name, exc)
        finally:
            process.stdin.close()

    async def _monitor_detached(self, process: asyncio.subprocess.Process) -> None:
        try:
            await process.communicate()
        except OSError as exc:
            logger.error("Error waiting for detached %s process %s: %s", self.name, process.pid, exc)
            return
        if process.returncode == 0:
            logger.info("Detached %s process %s completed successfully", self.name, process.pid)
        else:
            logger.warning(
                "Detached %s process %s exited with non-zero status: %s",
                self.name,
                process.pid,
                process.returncode,
            )

    async def _query_version(self, executable: str) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                "--version",
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            logger.debug("Version query for %s failed to start: %s", self.name, exc)
            return UNKNOWN_VERSION

        try:
            stdout_bytes, _ = await asyncio.wait_for(process.communicate(), VERSION_QUERY_TIMEOUT)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.debug("Version query for %s timed out", self.name)
            return UNKNOWN_VERSION

        if process.returncode != 0:
            return UNKNOWN_VERSION
        for line in stdout_bytes.decode("utf-8", errors="replace").splitlines():
            if line.strip():
                return line.strip()
        return UNKNOWN_VERSION


class DefinedAgent(CommandLineAgent):
    """Agent kind built from a YAML definition."""

    def __init__(self, definition: AgentKindDefinition) -> None:
        super().__init__(
            name=definition.id,
            executable=definition.executable,
            description=definition.description,
        )
        self.new_window_flag = definition.new_window_flag
        self.wait_flag = definition.wait_flag
        self.base_args = tuple(definition.base_args)
        self.trailing_args = tuple(definition.trailing_args)
        self.pass_worktree_arg = definition.pass_worktree_arg


__all__ = [
    "AgentLauncher",
    "CommandLineAgent",
    "DefinedAgent",
    "NOT_AVAILABLE",
    "UNKNOWN_VERSION",
]
