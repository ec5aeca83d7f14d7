from __future__ import annotations


class MdlGuideError(Exception):
    """Base error for mdlguide."""


class RegistryError(MdlGuideError):
    """
    Raised while building the module registry (malformed source, duplicate ids, conflicting slots).
    Never raised during composition.
    """
