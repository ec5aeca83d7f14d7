from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from mdlguide.composer.engine import Composer
from mdlguide.context.collector import SignalCollector
from mdlguide.errors import RegistryError
from mdlguide.loader.loader import ModuleLoader
from mdlguide.models import Signals
from mdlguide.registry.registry import ModuleRegistry
from mdlguide.settings import Settings
from mdlguide.telemetry.audit import AuditLogger


def _signals_from_args(args: argparse.Namespace) -> Signals:
    collector = SignalCollector()
    if args.git:
        base = collector.from_git(args.git, request_text=args.request, base_ref=args.base_ref)
        # Explicit flags win over what git reports.
        return collector.collect(
            args.repo or base.repo_name,
            args.branch or base.branch_name,
            args.request if args.request is not None else base.request_text,
            args.file or base.changed_files,
        )
    return collector.collect(args.repo, args.branch, args.request, args.file)


def _load_registry(settings: Settings, registry_path: Optional[str]) -> ModuleRegistry:
    if registry_path:
        return ModuleRegistry.from_yaml(registry_path)
    return ModuleRegistry.from_settings(settings)


def _add_signal_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--repo", default=None, help="Repository name, e.g. moodle-block_progress")
    p.add_argument("--branch", default=None, help="Current branch name")
    p.add_argument("--request", default=None, help="Free-text request")
    p.add_argument("--file", action="append", default=[], help="Changed file path (repeatable)")
    p.add_argument("--git", default=None, metavar="DIR", help="Read repo name / branch / changed files from a git checkout")
    p.add_argument("--base-ref", default=None, help="Diff base for --git (default: HEAD)")
    p.add_argument("--with", dest="extra", action="append", default=[], metavar="ID", help="Extra module id (repeatable)")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mdlguide", description="Select guidance modules for a Moodle plugin task.")
    ap.add_argument("--registry", default=None, help="Registry YAML (default: MDLGUIDE_REGISTRY_PATH or bundled)")
    sub = ap.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("detect", "Print detected plugin type and task type"),
        ("resolve", "Print the ordered module selection"),
        ("render", "Print the concatenated module text"),
    ):
        p = sub.add_parser(name, help=help_text)
        _add_signal_args(p)
        if name == "render":
            p.add_argument("--modules-root", default=None, help="Directory holding module text (default: MDLGUIDE_MODULES_ROOT)")

    sub.add_parser("check", help="Validate the registry and report dangling dependencies")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()

    try:
        registry = _load_registry(settings, args.registry)
    except RegistryError as e:
        print(f"registry error: {e}", file=sys.stderr)
        return 2

    if args.command == "check":
        dangling = registry.dangling_references()
        for module_id, missing in dangling:
            print(f"{module_id}: depends on missing module {missing}", file=sys.stderr)
        if dangling:
            return 1
        print(f"ok: {len(registry)} modules")
        return 0

    signals = _signals_from_args(args)
    audit = AuditLogger(settings.audit_log_path) if settings.audit_enabled else None
    composer = Composer(registry=registry, audit=audit)

    if args.command == "detect":
        det = composer.detector.detect(signals)
        print(det.model_dump_json(indent=2))
        return 0

    result = composer.compose(signals, extra_module_ids=args.extra)
    if args.command == "resolve":
        print(result.model_dump_json(indent=2))
        return 0

    loader = ModuleLoader(modules_root=args.modules_root or settings.modules_root, separator=settings.module_separator)
    bundle = loader.load(result.selection, registry)
    for w in result.warnings:
        print(json.dumps({"warning": w.kind, "message": w.message}), file=sys.stderr)
    for mid in bundle.missing:
        print(json.dumps({"warning": "module_text_missing", "module_id": mid}), file=sys.stderr)
    print(bundle.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())
