from __future__ import annotations

import json
import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from mdlguide.errors import RegistryError
from mdlguide.models import ModuleCategory, ModuleDescriptor, PluginType, Signals, TaskType, TriggerSpec
from mdlguide.settings import Settings


SUPPORTED_FORMAT_VERSIONS = (1,)

_CompiledTrigger = Tuple[TriggerSpec, Tuple[re.Pattern[str], ...], Tuple[re.Pattern[str], ...]]


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Whole-token match that also works for keywords like "$DB" or "install.xml".
    return re.compile(r"(?<!\w)" + re.escape(keyword.strip()) + r"(?!\w)", re.IGNORECASE)


def _compile_trigger(module_id: str, trig: TriggerSpec) -> _CompiledTrigger:
    kws = tuple(_keyword_pattern(k) for k in trig.keywords)
    files: List[re.Pattern[str]] = []
    for pat in trig.file_patterns:
        try:
            files.append(re.compile(pat))
        except re.error as e:
            raise RegistryError(f"{module_id}: invalid file pattern {pat!r}: {e}") from e
    return trig, kws, tuple(files)


def _trigger_matches(compiled: _CompiledTrigger, plugin_type: PluginType, task_type: TaskType, signals: Signals) -> bool:
    trig, kws, files = compiled
    if trig.is_empty():
        return False
    if trig.plugin_types and plugin_type not in trig.plugin_types:
        return False
    if trig.task_types and task_type not in trig.task_types:
        return False
    if not kws and not files:
        # Pure type trigger (e.g. "always for mod plugins").
        return True
    text = signals.request_text or ""
    if text and any(k.search(text) for k in kws):
        return True
    for path in signals.changed_files:
        if any(f.search(path) for f in files):
            return True
    return False


class ModuleRegistry:
    """
    Read-only catalog of guidance modules, in declaration order.

    Built once from a declarative source; construction fails fast on malformed records,
    duplicate ids or two modules claiming the same plugin/task slot.
    Dangling depends_on references are tolerated here and reported at composition time.
    """

    def __init__(self, modules: Iterable[ModuleDescriptor]):
        ordered: List[ModuleDescriptor] = []
        by_id: Dict[str, ModuleDescriptor] = {}
        slots: Dict[Tuple[ModuleCategory, str], str] = {}
        compiled: Dict[str, Tuple[_CompiledTrigger, ...]] = {}

        for m in modules:
            if m.id in by_id:
                raise RegistryError(f"duplicate module id: {m.id}")
            slot = self._slot_of(m)
            if slot is not None:
                if slot in slots:
                    raise RegistryError(f"{m.id}: slot {slot[0].value}/{slot[1]} already bound to {slots[slot]}")
                slots[slot] = m.id
            compiled[m.id] = tuple(_compile_trigger(m.id, t) for t in m.triggers)
            by_id[m.id] = m
            ordered.append(m)

        self._modules: Tuple[ModuleDescriptor, ...] = tuple(ordered)
        self._by_id: Mapping[str, ModuleDescriptor] = MappingProxyType(by_id)
        self._slots: Mapping[Tuple[ModuleCategory, str], str] = MappingProxyType(slots)
        self._compiled: Mapping[str, Tuple[_CompiledTrigger, ...]] = MappingProxyType(compiled)

    @staticmethod
    def _slot_of(m: ModuleDescriptor) -> Optional[Tuple[ModuleCategory, str]]:
        if m.category in (ModuleCategory.plugin_guide, ModuleCategory.plugin_patterns):
            if m.plugin_type is None or m.plugin_type == PluginType.unknown:
                raise RegistryError(f"{m.id}: {m.category.value} module requires a plugin_type")
            return (m.category, m.plugin_type.value)
        if m.category == ModuleCategory.task:
            if m.task_type is None:
                raise RegistryError(f"{m.id}: task module requires a task_type")
            return (m.category, m.task_type.value)
        return None

    # -------- construction --------

    @classmethod
    def from_records(cls, raw: Any, *, source: str = "<records>") -> "ModuleRegistry":
        """
        Accepts either a list of module records or a mapping with a `modules` list
        (and an optional `version`, which must be a supported format version).
        """
        if isinstance(raw, dict):
            version = raw.get("version", 1)
            if isinstance(version, bool) or version not in SUPPORTED_FORMAT_VERSIONS:
                raise RegistryError(f"{source}: unsupported registry format version {version!r}")
            raw = raw.get("modules")
        if not isinstance(raw, list):
            raise RegistryError(f"{source}: expected a list of module records (or a mapping with 'modules')")

        modules: List[ModuleDescriptor] = []
        for i, row in enumerate(raw):
            if not isinstance(row, dict):
                raise RegistryError(f"{source}: record #{i} is not a mapping")
            try:
                modules.append(ModuleDescriptor.model_validate(row))
            except ValidationError as e:
                rid = row.get("id", f"#{i}")
                raise RegistryError(f"{source}: invalid module record {rid}: {e}") from e
        return cls(modules)

    @classmethod
    def from_yaml(cls, path: str) -> "ModuleRegistry":
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except OSError as e:
            raise RegistryError(f"cannot read registry {path}: {e}") from e
        except yaml.YAMLError as e:
            raise RegistryError(f"malformed registry YAML {path}: {e}") from e
        return cls.from_records(raw, source=path)

    @classmethod
    def from_json(cls, text: str) -> "ModuleRegistry":
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryError(f"malformed registry JSON: {e}") from e
        return cls.from_records(raw, source="<registry_json>")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModuleRegistry":
        if settings.registry_json:
            return cls.from_json(settings.registry_json)
        return cls.from_yaml(settings.registry_path)

    # -------- lookups --------

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self._modules)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._by_id

    @property
    def modules(self) -> Tuple[ModuleDescriptor, ...]:
        return self._modules

    def get(self, module_id: str) -> Optional[ModuleDescriptor]:
        return self._by_id.get(module_id)

    def mandatory(self) -> List[ModuleDescriptor]:
        return [m for m in self._modules if m.mandatory]

    def _slot(self, category: ModuleCategory, key: str) -> Optional[ModuleDescriptor]:
        mid = self._slots.get((category, key))
        return self._by_id.get(mid) if mid else None

    def plugin_guide(self, plugin_type: PluginType) -> Optional[ModuleDescriptor]:
        return self._slot(ModuleCategory.plugin_guide, plugin_type.value)

    def plugin_patterns(self, plugin_type: PluginType) -> Optional[ModuleDescriptor]:
        return self._slot(ModuleCategory.plugin_patterns, plugin_type.value)

    def task_module(self, task_type: TaskType) -> Optional[ModuleDescriptor]:
        return self._slot(ModuleCategory.task, task_type.value)

    def find_by_trigger(self, plugin_type: PluginType, task_type: TaskType, signals: Signals) -> List[ModuleDescriptor]:
        """
        Modules whose triggers fire for this (plugin_type, task_type, signals), in declaration order.
        Any single matching trigger is enough.
        """
        out: List[ModuleDescriptor] = []
        for m in self._modules:
            if any(_trigger_matches(c, plugin_type, task_type, signals) for c in self._compiled[m.id]):
                out.append(m)
        return out

    def dangling_references(self) -> List[Tuple[str, str]]:
        """(module_id, missing_dependency_id) pairs, in declaration order."""
        out: List[Tuple[str, str]] = []
        for m in self._modules:
            for dep in m.depends_on:
                if dep not in self._by_id:
                    out.append((m.id, dep))
        return out
