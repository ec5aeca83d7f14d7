from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PluginType(str, Enum):
    block = "block"
    enrol = "enrol"
    filter = "filter"
    mod = "mod"
    qbank = "qbank"
    qtype = "qtype"
    report = "report"
    tiny = "tiny"
    local = "local"
    unknown = "unknown"


class TaskType(str, Enum):
    create = "create"
    bugfix = "bugfix"
    test = "test"
    enhance = "enhance"
    refactor = "refactor"


class ModuleCategory(str, Enum):
    core = "core"
    plugin_guide = "plugin_guide"
    plugin_patterns = "plugin_patterns"
    task = "task"
    pattern = "pattern"


class Signals(BaseModel):
    """
    Raw context for one invocation. Captured as-is; interpretation happens in the detector.
    """

    model_config = ConfigDict(frozen=True)

    repo_name: str = ""
    branch_name: str = ""
    request_text: str = ""
    changed_files: Tuple[str, ...] = ()


class TriggerSpec(BaseModel):
    """
    One trigger predicate. Type constraints narrow, keyword/file hints fire.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    keywords: Tuple[str, ...] = ()
    file_patterns: Tuple[str, ...] = ()
    plugin_types: Tuple[PluginType, ...] = ()
    task_types: Tuple[TaskType, ...] = ()

    @field_validator("keywords", "file_patterns")
    @classmethod
    def _no_blank_entries(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        # A blank entry would leave the trigger with nothing to match on.
        if any(not s.strip() for s in v):
            raise ValueError("keywords and file_patterns must not contain blank entries")
        return v

    def is_empty(self) -> bool:
        return not (self.keywords or self.file_patterns or self.plugin_types or self.task_types)


class ModuleDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1, description="Module text location, relative to modules_root.")
    category: ModuleCategory
    mandatory: bool = False
    triggers: Tuple[TriggerSpec, ...] = ()
    depends_on: Tuple[str, ...] = ()
    # Slot bindings: which plugin category / task type this guide serves.
    plugin_type: Optional[PluginType] = None
    task_type: Optional[TaskType] = None
    description: Optional[str] = None

    @field_validator("id")
    @classmethod
    def _strip_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("module id must not be blank")
        return v


WarningKind = Literal["unknown_plugin_type", "ambiguous_task", "missing_module", "dependency_cycle"]
TaskSource = Literal["request", "branch", "files", "default"]


class CompositionWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    message: str
    module_id: Optional[str] = None


class Detection(BaseModel):
    model_config = ConfigDict(frozen=True)

    plugin_type: PluginType = PluginType.unknown
    task_type: TaskType = TaskType.enhance
    task_source: TaskSource = "default"
    # Human-readable description of the rule that fired (for audit / CLI output).
    matched_rule: Optional[str] = None


class CompositionResult(BaseModel):
    """
    Output of one composition run: what was detected, which modules were selected (in order),
    and any non-fatal problems encountered along the way.
    """

    model_config = ConfigDict(frozen=True)

    signals: Signals
    detection: Detection
    selection: Tuple[str, ...] = ()
    warnings: Tuple[CompositionWarning, ...] = ()

    def warning_kinds(self) -> List[str]:
        return [w.kind for w in self.warnings]
