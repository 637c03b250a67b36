from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Dict, Iterable, List, Optional

from .logging import get_logger

LOGGER = get_logger("core.tool_discovery")


@dataclass(slots=True)
class ToolInfo:
    """Description of an external tool resolved for a module."""

    name: str
    path: Optional[Path]
    source: str = "missing"  # "override" | "install_root" | "path" | "missing"

    @property
    def available(self) -> bool:
        return self.path is not None


def is_windows_os() -> bool:
    return os.name == "nt"


class InstalledToolLocator:
    """
    Resolve tools that ship alongside the application.

    Tools are addressed the way they are laid out in an installation: a path
    relative to a module's tool folder (``ESEDatabaseView/ESEDatabaseView.exe``)
    plus the module namespace that owns it.

    Search order:
        1. Explicit override keyed by tool name (file stem)
        2. ``<root>/<namespace>/<relative>`` then ``<root>/<relative>`` for each root
        3. The executable name on ``PATH``
    """

    def __init__(
        self,
        search_roots: Iterable[Path] = (),
        overrides: Optional[Dict[str, Path]] = None,
    ) -> None:
        self.search_roots: List[Path] = [Path(root) for root in search_roots]
        self.overrides: Dict[str, Path] = dict(overrides or {})

    def locate(self, relative_tool_path: str, module_namespace: str = "") -> Optional[Path]:
        """Return the absolute path of the tool, or None when it is not installed."""
        return self.resolve(relative_tool_path, module_namespace).path

    def resolve(self, relative_tool_path: str, module_namespace: str = "") -> ToolInfo:
        relative = Path(*PureWindowsPath(relative_tool_path).parts)
        name = relative.stem

        override = self.overrides.get(name) or self.overrides.get(relative.name)
        if override is not None:
            if override.is_file():
                LOGGER.debug("Using override for tool %s: %s", name, override)
                return ToolInfo(name=name, path=override.resolve(), source="override")
            LOGGER.warning("Configured path for tool %s does not exist: %s", name, override)

        for root in self.search_roots:
            candidates = [root / relative]
            if module_namespace:
                candidates.insert(0, root / module_namespace / relative)
            for candidate in candidates:
                if candidate.is_file():
                    LOGGER.debug("Found tool %s under install root: %s", name, candidate)
                    return ToolInfo(name=name, path=candidate.resolve(), source="install_root")

        found = shutil.which(relative.name)
        if found:
            LOGGER.debug("Found tool %s on PATH: %s", name, found)
            return ToolInfo(name=name, path=Path(found), source="path")

        LOGGER.debug("Tool %s not found (roots=%s)", relative_tool_path, self.search_roots)
        return ToolInfo(name=name, path=None)
