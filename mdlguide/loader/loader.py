from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, List

from mdlguide.registry.registry import ModuleRegistry


@dataclass(frozen=True)
class LoadedModule:
    id: str
    path: str
    text: str


@dataclass(frozen=True)
class LoadedBundle:
    modules: List[LoadedModule] = field(default_factory=list)
    # Ids whose text could not be read (unknown id, missing or unreadable file). Never fatal.
    missing: List[str] = field(default_factory=list)
    separator: str = "\n\n---\n\n"

    def render(self) -> str:
        return self.separator.join(m.text.strip("\n") for m in self.modules)


@dataclass(frozen=True)
class ModuleLoader:
    """
    Turns a selection into module text, in selection order. Paths are registry-relative to modules_root.
    """

    modules_root: str
    separator: str = "\n\n---\n\n"

    def _resolve(self, rel_path: str) -> str:
        if os.path.isabs(rel_path):
            return rel_path
        return os.path.join(self.modules_root, rel_path)

    def load(self, selection: Iterable[str], registry: ModuleRegistry) -> LoadedBundle:
        loaded: List[LoadedModule] = []
        missing: List[str] = []
        for mid in selection:
            m = registry.get(mid)
            if m is None:
                missing.append(mid)
                continue
            abs_path = self._resolve(m.path)
            try:
                with open(abs_path, "r", encoding="utf-8", errors="replace") as f:
                    text = f.read()
            except OSError:
                # Absent, a directory, or unreadable: reported, never fatal.
                missing.append(mid)
                continue
            loaded.append(LoadedModule(id=mid, path=m.path, text=text))
        return LoadedBundle(modules=loaded, missing=missing, separator=self.separator)
