from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from mdlguide.models import Detection, PluginType, Signals, TaskType


def _prefix(component: str) -> re.Pattern[str]:
    # Frankenstyle component at the start of the name or after a separator.
    return re.compile(r"(?:^|[\s\-/.:_])" + re.escape(component) + "_")


def _words(*words: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


# The leftmost component in the name wins ("moodle-local_report_x" is local).
# On a tie at the same position, earlier rules win.
PLUGIN_TYPE_RULES: List[Tuple[PluginType, re.Pattern[str]]] = [
    (PluginType.qbank, _prefix("qbank")),
    (PluginType.qtype, _prefix("qtype")),
    (PluginType.block, _prefix("block")),
    (PluginType.enrol, _prefix("enrol")),
    (PluginType.filter, _prefix("filter")),
    (PluginType.tiny, _prefix("tiny")),
    (PluginType.report, _prefix("report")),
    (PluginType.local, _prefix("local")),
    (PluginType.mod, _prefix("mod")),
]

REQUEST_KEYWORD_RULES: List[Tuple[TaskType, re.Pattern[str]]] = [
    (
        TaskType.bugfix,
        _words("bug", "bugs", "buggy", "bugfix", "fix", "fixes", "fixed", "fixing", "hotfix", "broken", "crash", "crashes", "regression"),
    ),
    (TaskType.test, _words("test", "tests", "testing", "unit test", "phpunit", "behat", "coverage")),
    (TaskType.refactor, _words("refactor", "refactors", "refactoring", "cleanup", "clean up", "restructure", "reorganise", "reorganize")),
    (TaskType.create, _words("new", "create", "creating", "scaffold", "from scratch")),
    (TaskType.enhance, _words("enhance", "enhancement", "improve", "improvement", "extend", "feature", "add support")),
]

BRANCH_RULES: List[Tuple[TaskType, re.Pattern[str]]] = [
    (TaskType.bugfix, re.compile(r"^(?:fix|bugfix|hotfix|bug)[/-]")),
    (TaskType.test, re.compile(r"^(?:test|tests)[/-]")),
    (TaskType.refactor, re.compile(r"^refactor[/-]")),
    (TaskType.enhance, re.compile(r"^(?:feature|feat|enhancement)[/-]")),
    (TaskType.create, re.compile(r"^(?:new|create)[/-]")),
]

TEST_FILE_PATTERNS: List[re.Pattern[str]] = [
    re.compile(r"(?:^|/)tests/"),
    re.compile(r"_test\.php$"),
    re.compile(r"\.feature$"),
]


def _clean_branch(branch: str) -> str:
    b = branch.strip().lower()
    for prefix in ("refs/heads/", "remotes/origin/", "origin/"):
        if b.startswith(prefix):
            b = b[len(prefix) :]
    return b


@dataclass(frozen=True)
class RuleBasedDetector:
    """
    Deterministic rules only: fixed tables, first match wins, safe defaults.
    Explicit intent (request text) outranks implicit signals (branch, then changed files).
    """

    def detect_plugin_type(self, signals: Signals) -> PluginType:
        plugin_type, _ = self._match_plugin_type(signals)
        return plugin_type

    def _match_plugin_type(self, signals: Signals) -> Tuple[PluginType, Optional[str]]:
        name = (signals.repo_name or "").lower()
        if not name:
            return PluginType.unknown, None
        best: Optional[Tuple[int, int, PluginType]] = None
        for rank, (plugin_type, pat) in enumerate(PLUGIN_TYPE_RULES):
            m = pat.search(name)
            if m and (best is None or (m.start(), rank) < best[:2]):
                best = (m.start(), rank, plugin_type)
        if best is None:
            return PluginType.unknown, None
        return best[2], f"repo name prefix '{best[2].value}_'"

    def detect_task_type(self, signals: Signals) -> TaskType:
        task_type, _, _ = self._match_task_type(signals)
        return task_type

    def _match_task_type(self, signals: Signals) -> Tuple[TaskType, str, Optional[str]]:
        text = signals.request_text or ""
        if text.strip():
            for task_type, pat in REQUEST_KEYWORD_RULES:
                m = pat.search(text)
                if m:
                    return task_type, "request", f"request keyword '{m.group(0).lower()}'"

        branch = _clean_branch(signals.branch_name or "")
        if branch:
            for task_type, pat in BRANCH_RULES:
                m = pat.search(branch)
                if m:
                    return task_type, "branch", f"branch prefix '{m.group(0)}'"

        for path in signals.changed_files:
            for pat in TEST_FILE_PATTERNS:
                if pat.search(path):
                    return TaskType.test, "files", f"test file changed: {path}"

        return TaskType.enhance, "default", None

    def detect(self, signals: Signals) -> Detection:
        plugin_type, plugin_rule = self._match_plugin_type(signals)
        task_type, source, task_rule = self._match_task_type(signals)
        rules = [r for r in (plugin_rule, task_rule) if r]
        return Detection(
            plugin_type=plugin_type,
            task_type=task_type,
            task_source=source,  # type: ignore[arg-type]
            matched_rule="; ".join(rules) or None,
        )


def detect_plugin_type(signals: Signals) -> PluginType:
    return RuleBasedDetector().detect_plugin_type(signals)


def detect_task_type(signals: Signals) -> TaskType:
    return RuleBasedDetector().detect_task_type(signals)
