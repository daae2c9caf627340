"""Runtime registry of agent kinds."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from ..errors import UnknownAgentTypeError
from .builtin import BUILTIN_AGENTS
from .launcher import AgentLauncher, DefinedAgent
from .loader import AgentKindLoader
from .models import AgentInfo

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Agent launchers keyed by name, populated at startup."""

    def __init__(self, launchers: Iterable[AgentLauncher] = ()) -> None:
        self._launchers: dict[str, AgentLauncher] = {}
        for launcher in launchers:
            self.register(launcher)

    def register(self, launcher: AgentLauncher) -> None:
        if launcher.name in self._launchers:
            logger.info("Replacing registered agent kind '%s'", launcher.name)
        self._launchers[launcher.name] = launcher

    def get(self, name: str) -> AgentLauncher:
        try:
            return self._launchers[name]
        except KeyError as exc:
            raise UnknownAgentTypeError(name, self._launchers) from exc

    def names(self) -> list[str]:
        return list(self._launchers)

    def __contains__(self, name: object) -> bool:
        return name in self._launchers

    def __iter__(self) -> Iterator[AgentLauncher]:
        return iter(list(self._launchers.values()))

    def __len__(self) -> int:
        return len(self._launchers)

    async def describe_all(self) -> list[AgentInfo]:
        """Describe every registered kind, skipping kinds whose version query raises."""

        infos: list[AgentInfo] = []
        for launcher in self:
            try:
                infos.append(await launcher.describe())
            except Exception as exc:  # pragma: no cover - third-party launchers
                logger.warning("Failed to describe agent kind '%s': %s", launcher.name, exc)
        return infos


def build_registry(agent_paths: Iterable[Path] = ()) -> AgentRegistry:
    """Register the built-in agent kinds plus any YAML definitions found on ``agent_paths``."""

    registry = AgentRegistry(agent_class() for agent_class in BUILTIN_AGENTS)
    loader = AgentKindLoader(agent_paths)
    definitions = loader.load_all()
    for error in loader.errors:
        logger.error("Skipping agent definition: %s", error)
    for definition in definitions.values():
        registry.register(DefinedAgent(definition))
    logger.debug("Registered agent kinds: %s", ", ".join(registry.names()))
    return registry


__all__ = ["AgentRegistry", "build_registry"]
