from __future__ import annotations

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_REGISTRY_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "registry.yml")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MDLGUIDE_", extra="ignore")

    # Declarative module registry (YAML). Defaults to the bundled catalog.
    registry_path: str = DEFAULT_REGISTRY_PATH

    # Inline registry override (JSON). Takes precedence over registry_path when set.
    # Same record format as the YAML file, e.g.
    #   MDLGUIDE_REGISTRY_JSON='[{"id": "core.base-instructions", "path": "core/base.md",
    #                             "category": "core", "mandatory": true}]'
    registry_json: str | None = None

    # Directory that holds module text files; registry paths are relative to it.
    modules_root: str = "."

    # Text placed between modules when rendering a selection.
    module_separator: str = "\n\n---\n\n"

    # JSONL audit trail of composition runs.
    audit_enabled: bool = False
    audit_log_path: str = "var/audit/mdlguide_audit.jsonl"
