from __future__ import annotations

import pytest

from mdlguide.classifier.rules import RuleBasedDetector, detect_plugin_type, detect_task_type
from mdlguide.context.collector import collect
from mdlguide.models import PluginType, TaskType


@pytest.mark.parametrize(
    "repo_name, expected",
    [
        ("moodle-block_progress", PluginType.block),
        ("moodle-qtype_calc", PluginType.qtype),
        ("moodle-qbank_comment", PluginType.qbank),
        ("moodle-enrol_self", PluginType.enrol),
        ("moodle-filter_multilang2", PluginType.filter),
        ("moodle-mod_forum", PluginType.mod),
        ("moodle-report_log", PluginType.report),
        ("moodle-tiny_h5p", PluginType.tiny),
        ("moodle-local_sync", PluginType.local),
        ("block_progress", PluginType.block),
        ("MOODLE-BLOCK_PROGRESS", PluginType.block),
        ("git@github.com:org/moodle-qtype_calc.git", PluginType.qtype),
        ("moodle_block_progress", PluginType.block),
        ("moodle_qtype_calc", PluginType.qtype),
        ("moodle_local_report_builder", PluginType.local),
        # Leftmost component wins when more than one appears.
        ("moodle-local_report_builder", PluginType.local),
        ("block_progress_mod_x", PluginType.block),
    ],
)
def test_plugin_type_from_repo_name_prefix(repo_name: str, expected: PluginType) -> None:
    assert detect_plugin_type(collect(repo_name)) == expected


@pytest.mark.parametrize("repo_name", ["my-custom-repo", "", "moodle-theme_boost", "notablock_x", "blocks"])
def test_plugin_type_unknown_without_known_prefix(repo_name: str) -> None:
    assert detect_plugin_type(collect(repo_name)) == PluginType.unknown


@pytest.mark.parametrize(
    "request_text, expected",
    [
        ("create a new block", TaskType.create),
        ("Fix the grading bug", TaskType.bugfix),
        ("the quiz page is broken", TaskType.bugfix),
        ("add tests", TaskType.test),
        ("increase phpunit coverage", TaskType.test),
        ("refactor the renderer", TaskType.refactor),
        ("improve the report layout", TaskType.enhance),
        # Bugfix keywords are checked before test keywords.
        ("fix the failing tests", TaskType.bugfix),
    ],
)
def test_task_type_from_request_keywords(request_text: str, expected: TaskType) -> None:
    assert detect_task_type(collect("moodle-block_x", "main", request_text)) == expected


def test_task_keywords_match_whole_words_only() -> None:
    s = collect("moodle-block_x", "main", "update the prefix handling in the latest release")
    assert detect_task_type(s) == TaskType.enhance


@pytest.mark.parametrize(
    "branch, expected",
    [
        ("fix/calculation-error", TaskType.bugfix),
        ("hotfix-login", TaskType.bugfix),
        ("refs/heads/fix/x", TaskType.bugfix),
        ("feature/grading-ui", TaskType.enhance),
        ("refactor/output", TaskType.refactor),
        ("test/behat", TaskType.test),
        ("new/skeleton", TaskType.create),
    ],
)
def test_task_type_from_branch_prefix(branch: str, expected: TaskType) -> None:
    det = RuleBasedDetector().detect(collect("moodle-qtype_calc", branch, ""))
    assert det.task_type == expected
    assert det.task_source == "branch"


def test_request_keyword_outranks_branch() -> None:
    det = RuleBasedDetector().detect(collect("moodle-block_x", "fix/something", "create a new block"))
    assert det.task_type == TaskType.create
    assert det.task_source == "request"


def test_branch_outranks_changed_files() -> None:
    s = collect("moodle-block_x", "feature/x", "", ["tests/block_x_test.php"])
    assert detect_task_type(s) == TaskType.enhance


@pytest.mark.parametrize("path", ["tests/lib_test.php", "blocks/x/tests/behat/view.feature", "classes/foo_test.php"])
def test_test_files_imply_test_task(path: str) -> None:
    det = RuleBasedDetector().detect(collect("moodle-block_x", "main", "", [path]))
    assert det.task_type == TaskType.test
    assert det.task_source == "files"


def test_defaults_to_enhance_when_nothing_matches() -> None:
    det = RuleBasedDetector().detect(collect("my-custom-repo", "main", "", ["lib.php"]))
    assert det.plugin_type == PluginType.unknown
    assert det.task_type == TaskType.enhance
    assert det.task_source == "default"
    assert det.matched_rule is None


def test_detect_records_matched_rules() -> None:
    det = RuleBasedDetector().detect(collect("moodle-qtype_calc", "fix/calculation-error", ""))
    assert det.plugin_type == PluginType.qtype
    assert det.task_type == TaskType.bugfix
    assert det.matched_rule is not None
    assert "qtype_" in det.matched_rule
    assert "fix/" in det.matched_rule
