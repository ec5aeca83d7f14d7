from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional

from mdlguide.models import Signals


def _normalize_path(p: str) -> str:
    p = p.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p


def _repo_name_from_remote(url: str) -> str:
    # git@github.com:org/moodle-block_x.git, https://github.com/org/moodle-block_x(.git)
    name = url.strip().rstrip("/")
    name = name.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


@dataclass(frozen=True)
class SignalCollector:
    """
    Captures raw context for one invocation. No interpretation happens here; the detector owns that.
    """

    git_timeout_s: float = 10.0

    def collect(
        self,
        repo_name: Optional[str],
        branch_name: Optional[str] = None,
        request_text: Optional[str] = None,
        changed_files: Optional[Iterable[str]] = None,
    ) -> Signals:
        files: List[str] = []
        for f in changed_files or []:
            if not isinstance(f, str):
                continue
            p = _normalize_path(f)
            if p:
                files.append(p)
        return Signals(
            repo_name=(repo_name or "").strip(),
            branch_name=(branch_name or "").strip(),
            request_text=request_text or "",
            changed_files=tuple(files),
        )

    def _git(self, repo_dir: str, *args: str) -> str:
        try:
            r = subprocess.run(
                ["git", "-C", repo_dir, *args],
                capture_output=True,
                text=True,
                check=False,
                timeout=self.git_timeout_s,
            )
        except (OSError, subprocess.SubprocessError):
            # git missing / hung: signals simply stay empty.
            return ""
        if r.returncode != 0:
            return ""
        return r.stdout

    def from_git(self, repo_dir: str, *, request_text: Optional[str] = None, base_ref: Optional[str] = None) -> Signals:
        """
        Best-effort signal capture from a git checkout.

        - repo name: `origin` remote name, else the top-level directory name
        - branch: current branch (empty when detached)
        - changed files: diff against base_ref (or HEAD) plus untracked files
        """
        remote = self._git(repo_dir, "remote", "get-url", "origin").strip()
        if remote:
            repo_name = _repo_name_from_remote(remote)
        else:
            top = self._git(repo_dir, "rev-parse", "--show-toplevel").strip() or os.path.abspath(repo_dir)
            repo_name = os.path.basename(top.rstrip("/\\"))

        branch = self._git(repo_dir, "rev-parse", "--abbrev-ref", "HEAD").strip()
        if branch == "HEAD":
            branch = ""

        diff_range = f"{base_ref}...HEAD" if base_ref else "HEAD"
        changed = self._git(repo_dir, "diff", "--name-only", diff_range).splitlines()
        changed += self._git(repo_dir, "ls-files", "--others", "--exclude-standard").splitlines()

        seen: set[str] = set()
        files: List[str] = []
        for f in changed:
            p = _normalize_path(f)
            if p and p not in seen:
                seen.add(p)
                files.append(p)

        return self.collect(repo_name, branch, request_text, files)


def collect(
    repo_name: Optional[str],
    branch_name: Optional[str] = None,
    request_text: Optional[str] = None,
    changed_files: Optional[Iterable[str]] = None,
) -> Signals:
    return SignalCollector().collect(repo_name, branch_name, request_text, changed_files)
