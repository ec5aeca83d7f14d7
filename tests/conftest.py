from __future__ import annotations

import os

import pytest

from mdlguide.registry.registry import ModuleRegistry
from mdlguide.settings import DEFAULT_REGISTRY_PATH


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Keep tests deterministic and isolated from developer machine env.
    """
    for k in list(os.environ.keys()):
        if k.startswith("MDLGUIDE_"):
            monkeypatch.delenv(k, raising=False)


@pytest.fixture(scope="session")
def registry() -> ModuleRegistry:
    return ModuleRegistry.from_yaml(DEFAULT_REGISTRY_PATH)
