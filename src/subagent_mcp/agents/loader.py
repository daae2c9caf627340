"""Load agent kind definitions from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .models import AgentKindDefinition


class AgentKindLoader:
    """Reads ``*.yml``/``*.yaml`` agent kind definitions from search paths.

    Each file is loaded on its own: a file that fails to parse or validate is
    recorded in ``errors`` and the remaining files still load.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.is_dir()]
        self.errors: list[str] = []

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def definition_files(self) -> list[Path]:
        files: list[Path] = []
        for base in self._search_paths:
            files.extend(sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")))
        return files

    def load_all(self) -> dict[str, AgentKindDefinition]:
        """Return the valid definitions keyed by id; later paths win on collisions."""

        self.errors = []
        definitions: dict[str, AgentKindDefinition] = {}
        for path in self.definition_files():
            definition = self._load_file(path)
            if definition is not None:
                definitions[definition.id] = definition
        return definitions

    def _load_file(self, path: Path) -> AgentKindDefinition | None:
        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            self.errors.append(f"Failed to read {path}: {exc}")
            return None
        if document is None:
            return None
        try:
            return AgentKindDefinition.model_validate(document)
        except ValidationError as exc:
            self.errors.append(f"Agent definition error in {path}: {exc}")
            return None


__all__ = ["AgentKindLoader"]
