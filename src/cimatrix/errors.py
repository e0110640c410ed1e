# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(eq=False)
class CIMatrixError(Exception):
    """
    Structured error with enough context for:
      - clean CLI output
      - callers that branch on `kind` instead of the class
      - debugging without full tracebacks
    """
    kind: str
    message: str
    path: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.path:
            lines.append(f"path={self.path}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class ManifestNotFound(CIMatrixError):
    def __init__(self, path: str | Path):
        super().__init__(
            kind="manifest_not_found",
            message="required file does not exist",
            path=str(path),
        )


class ManifestParseError(CIMatrixError):
    def __init__(self, path: str | Path, reason: str):
        super().__init__(
            kind="manifest_parse_error",
            message="file could not be parsed",
            path=str(path),
            details={"reason": reason},
        )


class PackageNotFound(CIMatrixError):
    def __init__(self, name: str, root: str | Path | None = None):
        super().__init__(
            kind="package_not_found",
            message=f"package '{name}' is not a workspace member",
            path=str(root) if root is not None else None,
            details={"package": name},
        )


class WorkspaceRootNotFound(CIMatrixError):
    def __init__(self, start: str | Path):
        super().__init__(
            kind="workspace_root_not_found",
            message="no ancestor Cargo.toml declares [workspace] members",
            path=str(start),
        )


class InvalidPatternError(CIMatrixError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(
            kind="invalid_pattern",
            message=f"invalid glob pattern {pattern!r}",
            details={"reason": reason},
        )
        self.pattern = pattern
