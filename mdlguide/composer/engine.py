from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from mdlguide.classifier.rules import RuleBasedDetector
from mdlguide.models import CompositionResult, CompositionWarning, Detection, PluginType, Signals, TaskType
from mdlguide.registry.registry import ModuleRegistry
from mdlguide.telemetry.audit import AuditLogger


class _SelectionBuilder:
    """
    Per-call state: ordered ids, seen set, warnings. Never shared between calls.
    """

    def __init__(self, registry: ModuleRegistry):
        self.registry = registry
        self.order: List[str] = []
        self.warnings: List[CompositionWarning] = []
        self._seen: Set[str] = set()
        self._visiting: List[str] = []
        self._warned: Set[tuple] = set()

    def warn(self, kind: str, message: str, module_id: Optional[str] = None) -> None:
        key = (kind, module_id, message)
        if key in self._warned:
            return
        self._warned.add(key)
        self.warnings.append(CompositionWarning(kind=kind, message=message, module_id=module_id))  # type: ignore[arg-type]

    def add(self, module_id: str, *, requested_by: Optional[str] = None) -> None:
        if module_id in self._seen:
            return
        m = self.registry.get(module_id)
        if m is None:
            src = f" (required by {requested_by})" if requested_by else ""
            self.warn("missing_module", f"module {module_id} is not in the registry{src}; skipped", module_id)
            return
        if module_id in self._visiting:
            chain = " -> ".join(self._visiting + [module_id])
            self.warn("dependency_cycle", f"dependency cycle: {chain}", module_id)
            return

        self._visiting.append(module_id)
        try:
            for dep in m.depends_on:
                self.add(dep, requested_by=module_id)
        finally:
            self._visiting.pop()

        self._seen.add(module_id)
        self.order.append(module_id)


@dataclass(frozen=True)
class Composer:
    """
    Resolves detected plugin/task types plus signals into an ordered, deduplicated module selection:

    mandatory -> plugin guide -> plugin patterns -> task guide -> triggered patterns -> extra ids,
    with each module's depends_on chain inserted (depth first) immediately before first use.
    """

    registry: ModuleRegistry
    detector: RuleBasedDetector = field(default_factory=RuleBasedDetector)
    audit: Optional[AuditLogger] = None

    def resolve(
        self,
        plugin_type: PluginType,
        task_type: TaskType,
        signals: Signals,
        *,
        extra_module_ids: Iterable[str] = (),
        detection: Optional[Detection] = None,
    ) -> CompositionResult:
        det = detection or Detection(plugin_type=plugin_type, task_type=task_type)
        b = _SelectionBuilder(self.registry)

        if plugin_type == PluginType.unknown:
            b.warn("unknown_plugin_type", "no plugin category recognised from repo name; generic guidance only")
        if detection is not None and detection.task_source == "default":
            b.warn("ambiguous_task", f"no task rule matched; defaulted to {task_type.value}")

        for m in self.registry.mandatory():
            b.add(m.id)

        if plugin_type != PluginType.unknown:
            guide = self.registry.plugin_guide(plugin_type)
            if guide is not None:
                b.add(guide.id)
            patterns = self.registry.plugin_patterns(plugin_type)
            if patterns is not None:
                b.add(patterns.id)

        task = self.registry.task_module(task_type)
        if task is not None:
            b.add(task.id)

        for m in self.registry.find_by_trigger(plugin_type, task_type, signals):
            b.add(m.id)

        for mid in extra_module_ids:
            if mid and mid.strip():
                b.add(mid.strip(), requested_by="request")

        result = CompositionResult(
            signals=signals,
            detection=det,
            selection=tuple(b.order),
            warnings=tuple(b.warnings),
        )
        if self.audit is not None:
            self._audit(self.audit, result)
        return result

    def compose(self, signals: Signals, *, extra_module_ids: Iterable[str] = ()) -> CompositionResult:
        det = self.detector.detect(signals)
        return self.resolve(det.plugin_type, det.task_type, signals, extra_module_ids=extra_module_ids, detection=det)

    def _audit(self, audit: AuditLogger, result: CompositionResult) -> None:
        events = [
            (
                "composition.resolved",
                {
                    "signals": result.signals.model_dump(mode="json"),
                    "detection": result.detection.model_dump(mode="json"),
                    "selection": list(result.selection),
                },
            )
        ]
        events += [("composition.warning", w.model_dump(mode="json")) for w in result.warnings]
        audit.write_many(audit.new_correlation_id(), events)
