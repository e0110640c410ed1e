# git.py
# Small, focused wrapper around the Git CLI.
# Every git call in cimatrix goes through `_git` so the rest of the codebase
# never calls subprocess("git ...") directly.

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    A non-zero exit raises subprocess.CalledProcessError; a missing git binary
    raises FileNotFoundError. Both are left to the caller.
    """
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
    )
    return out.strip()


def changed_files(
    base: str,
    head: str = "HEAD",
    cwd: Optional[str | Path] = None,
) -> List[str]:
    """
    Files changed between two refs.

    Paths are relative to `cwd` (`--relative`), so a workspace living in a
    subdirectory of the repository gets paths relative to its own root;
    changes outside `cwd` are left out.

    Typical usage:
        files = changed_files("origin/main", cwd=workspace_root)
    """
    out = _git(["diff", "--name-only", "--relative", f"{base}..{head}"], cwd=cwd)
    if not out:
        return []
    return out.splitlines()
