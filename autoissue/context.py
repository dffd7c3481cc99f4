"""
Repository context for prompts.

Finds an optional project description file (GEMINI.md by default) in the
working directory or at the git root and hands it to the prompts
verbatim. The file is ignored when it is empty or larger than the
configured cap, so a large README never floods the model.

Also reports which repository and branch the request will act on.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

from loguru import logger

from autoissue.config_loader import ContextConfig

_REMOTE_RE = re.compile(r"github\.com[:/]([^/]+/[^/]+?)(?:\.git)?$")


class RepoContext:
    """
    Read-only view of the local repository.

    Modes:
      1. Context file present and within the cap -> `load()` returns it
      2. No file, unreadable, empty or too large  -> `load()` returns ""
    """

    def __init__(self, cwd: Path, config: ContextConfig | None = None):
        self.cwd = cwd.resolve()
        self.config = config or ContextConfig()
        self._cached: str | None = None

    # ------------------------------------------------------------------
    # Git helpers
    # ------------------------------------------------------------------

    def _git(self, *args: str) -> str:
        """stdout of a git command, or "" when git is missing or fails."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"[CONTEXT] git {' '.join(args)} unavailable: {e}")
            return ""
        return result.stdout.strip() if result.returncode == 0 else ""

    def git_root(self) -> Path | None:
        root = self._git("rev-parse", "--show-toplevel")
        return Path(root) if root else None

    def repository_name(self) -> str | None:
        """`owner/name` for GitHub remotes, the raw URL otherwise."""
        url = self._git("remote", "get-url", "origin")
        if not url:
            return None
        match = _REMOTE_RE.search(url)
        return match.group(1) if match else url

    def current_branch(self) -> str | None:
        return self._git("branch", "--show-current") or None

    # ------------------------------------------------------------------
    # Context file
    # ------------------------------------------------------------------

    def context_file(self) -> Path | None:
        """The context file in cwd, else at the git root, else None."""
        candidates = [self.cwd / self.config.filename]
        root = self.git_root()
        if root:
            candidates.append(root / self.config.filename)

        for path in candidates:
            if path.is_file():
                return path
        return None

    def load(self) -> str:
        """Context text, or "" when there is none usable."""
        if self._cached is not None:
            return self._cached

        self._cached = ""
        path = self.context_file()
        if not path:
            return self._cached

        try:
            size = path.stat().st_size
            if size > self.config.max_bytes:
                logger.info(
                    f"[CONTEXT] Skipping {path.name}: {size} bytes exceeds {self.config.max_bytes}"
                )
                return self._cached
            content = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[CONTEXT] Could not read {path}: {e}")
            return self._cached

        if content:
            logger.info(f"[CONTEXT] Using {path.name} context from {path.parent}")
        self._cached = content
        return self._cached

    def describe(self) -> dict[str, str]:
        """Repository and branch for the banner; missing values are omitted."""
        info: dict[str, str] = {}
        name = self.repository_name()
        if name:
            info["repository"] = name
        branch = self.current_branch()
        if branch:
            info["branch"] = branch
        return info


def context_block(context: str, heading: str = "Repository context") -> str:
    """Prompt fragment for repository context; empty when there is none."""
    if not context:
        return ""
    return f"\n\n{heading}:\n{context}"
