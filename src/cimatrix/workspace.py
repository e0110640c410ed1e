# workspace.py
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Set

from . import settings
from .errors import WorkspaceRootNotFound
from .manifest import load_toml, manifest_path, read_package_name

logger = logging.getLogger(__name__)


def _canonical(path: Path) -> Optional[Path]:
    try:
        return path.resolve(strict=True)
    except (FileNotFoundError, NotADirectoryError):
        return None


def _declares_members(data: dict) -> bool:
    workspace = data.get("workspace")
    return isinstance(workspace, dict) and isinstance(workspace.get("members"), list)


def find_workspace_root(start: str | Path) -> Path:
    """
    Walk up from `start` to the first Cargo.toml that declares
    [workspace] members.
    """
    start_p = Path(start).expanduser().resolve()
    for candidate in (start_p, *start_p.parents):
        toml_path = candidate / settings.MANIFEST_FILENAME
        if not toml_path.is_file():
            continue
        if _declares_members(load_toml(toml_path)):
            return candidate
    raise WorkspaceRootNotFound(start_p)


def open_workspace(workspace: str | Path | WorkspaceContext) -> WorkspaceContext:
    if isinstance(workspace, WorkspaceContext):
        return workspace
    return WorkspaceContext(workspace)


class WorkspaceContext:
    """
    Name -> canonical directory mapping for every member of one workspace.

    Discovery is lazy: the first lookup that misses the cache loads every
    declared member at once, so a single miss pays for full discovery and
    later lookups are pure reads. There is no invalidation; a context is
    meant for one run.

    The caches are guarded by one lock so a context can be shared between
    threads.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()
        data = load_toml(manifest_path(self.root))
        self.manifest = data

        workspace = data.get("workspace")
        workspace = workspace if isinstance(workspace, dict) else {}
        self.member_patterns: List[str] = [
            str(m) for m in workspace.get("members", []) if isinstance(m, str)
        ]
        self.exclude: List[str] = [
            str(m) for m in workspace.get("exclude", []) if isinstance(m, str)
        ]

        self._lock = threading.RLock()
        self._member_cache: Dict[str, Path] = {}
        self._path_cache: Set[Path] = set()
        self._fully_loaded = False
        self._member_dirs: Optional[List[Path]] = None

    # -----------------------------------------------------------------
    # Discovery
    # -----------------------------------------------------------------

    def _expand(self, pattern: str) -> List[Path]:
        # "." (or "./") names the root package; pathlib cannot glob an empty pattern
        if not Path(pattern).parts:
            return [self.root]
        return sorted(self.root.glob(pattern))

    def member_dirs(self) -> List[Path]:
        """Expand member globs to directories holding a Cargo.toml, in declaration order."""
        with self._lock:
            if self._member_dirs is not None:
                return list(self._member_dirs)

            excluded = {_canonical(self.root / e) for e in self.exclude}
            excluded.discard(None)

            dirs: List[Path] = []
            for pattern in self.member_patterns:
                for match in self._expand(pattern):
                    if not match.is_dir() or not manifest_path(match).is_file():
                        continue
                    if _canonical(match) in excluded:
                        continue
                    dirs.append(match)

            # a lone package root is its own single-member workspace
            if not self.member_patterns and isinstance(self.manifest.get("package"), dict):
                dirs.append(self.root)

            logger.debug(
                "expanded %d member patterns to %d directories",
                len(self.member_patterns),
                len(dirs),
            )
            self._member_dirs = dirs
            return list(dirs)

    def _ensure_fully_loaded(self) -> None:
        with self._lock:
            if self._fully_loaded:
                return
            started = time.perf_counter()
            for member_dir in self.member_dirs():
                canonical = _canonical(member_dir)
                if canonical is None or canonical in self._path_cache:
                    continue
                name = read_package_name(canonical)
                if name is None:
                    continue
                self._member_cache.setdefault(name, canonical)
                self._path_cache.add(canonical)
            self._fully_loaded = True
            logger.debug(
                "loaded %d workspace members in %.3fs",
                len(self._member_cache),
                time.perf_counter() - started,
            )

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    def find_member(self, name: str) -> Optional[Path]:
        with self._lock:
            hit = self._member_cache.get(name)
            if hit is not None:
                return hit
            self._ensure_fully_loaded()
            return self._member_cache.get(name)

    def is_member_by_path(self, path: str | Path) -> bool:
        canonical = _canonical(Path(path))
        if canonical is None:
            return False
        with self._lock:
            if canonical in self._path_cache:
                return True
            for member_dir in self.member_dirs():
                if _canonical(member_dir) != canonical:
                    continue
                self._path_cache.add(canonical)
                name = read_package_name(canonical)
                if name is not None:
                    self._member_cache.setdefault(name, canonical)
                return True
            return False

    def member_name_for_path(self, path: str | Path) -> Optional[str]:
        canonical = _canonical(Path(path))
        if canonical is None:
            return None
        for name, member_path in self.members().items():
            if member_path == canonical:
                return name
        return None

    def members(self) -> Dict[str, Path]:
        """All members, name -> canonical path, in declaration order."""
        self._ensure_fully_loaded()
        with self._lock:
            order = {}
            for member_dir in self.member_dirs():
                canonical = _canonical(member_dir)
                for name, path in self._member_cache.items():
                    if path == canonical and name not in order:
                        order[name] = path
            for name, path in self._member_cache.items():
                order.setdefault(name, path)
            return order

    def member_names(self) -> List[str]:
        return sorted(self.members())

    def relative_path(self, path: str | Path) -> str:
        """Path relative to the workspace root in posix form, when it is inside it."""
        p = Path(path)
        if not p.is_absolute():
            return p.as_posix()
        try:
            return p.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return p.as_posix()
