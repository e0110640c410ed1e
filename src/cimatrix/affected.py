# affected.py
from __future__ import annotations

import logging
from collections import defaultdict, deque
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .classify import workspace_dependencies
from .manifest import load_manifest
from .model import AffectedPackage
from .patterns import compile_path_patterns, is_ignored
from .workspace import WorkspaceContext, open_workspace

logger = logging.getLogger(__name__)


def build_reverse_dependencies(context: WorkspaceContext) -> Dict[str, List[str]]:
    """package -> packages that declare it as a workspace dependency (sorted)."""
    reverse: Dict[str, Set[str]] = defaultdict(set)
    for name, package_dir in context.members().items():
        manifest = load_manifest(package_dir)
        for dep in workspace_dependencies(manifest, package_dir, context):
            if dep.package != name:
                reverse[dep.package].add(name)
    return {k: sorted(v) for k, v in reverse.items()}


def _normalize(path: str, root: Path) -> Optional[str]:
    p = Path(path)
    if p.is_absolute():
        try:
            p = p.relative_to(root)
        except ValueError:
            try:
                p = p.resolve().relative_to(root)
            except ValueError:
                logger.debug("changed file %s is outside the workspace", path)
                return None
    text = PurePosixPath(p.as_posix()).as_posix()
    while text.startswith("./"):
        text = text[2:]
    return text


def _owner(file_path: str, member_dirs: Dict[str, str]) -> Optional[str]:
    """Member whose directory is the longest prefix of `file_path`."""
    best: Optional[str] = None
    best_len = -1
    for name, rel in member_dirs.items():
        if rel in ("", "."):
            length = 0
        elif file_path == rel or file_path.startswith(rel + "/"):
            length = len(rel)
        else:
            continue
        if length > best_len:
            best, best_len = name, length
    return best


def attribute_changed_files(
    context: WorkspaceContext,
    changed_files: Iterable[str],
    ignore_patterns: Sequence[str] = (),
) -> Dict[str, List[str]]:
    """
    Map each non-ignored changed file to the single member that owns it.

    Returns package -> files (in input order). Files outside every member are
    dropped. Raises InvalidPatternError on a malformed ignore pattern.
    """
    compiled = compile_path_patterns(ignore_patterns)
    member_dirs = {name: context.relative_path(path) for name, path in context.members().items()}

    owned: Dict[str, List[str]] = defaultdict(list)
    for raw in changed_files:
        file_path = _normalize(raw, context.root)
        if not file_path:
            continue
        if compiled and is_ignored(file_path, compiled):
            logger.debug("ignoring changed file %s", file_path)
            continue
        owner = _owner(file_path, member_dirs)
        if owner is None:
            continue
        if file_path not in owned[owner]:
            owned[owner].append(file_path)
    return dict(owned)


def find_affected_packages_with_reasoning(
    workspace: str | Path | WorkspaceContext,
    changed_files: Iterable[str],
    ignore_patterns: Sequence[str] = (),
) -> List[AffectedPackage]:
    """
    Packages whose build could change because of `changed_files`, with the
    reasons each one was picked, sorted by name.
    """
    context = open_workspace(workspace)
    direct = attribute_changed_files(context, changed_files, ignore_patterns)

    reasons: Dict[str, List[str]] = defaultdict(list)
    for name, files in direct.items():
        for f in files:
            reasons[name].append(f"Contains changed file: {f}")

    reverse = build_reverse_dependencies(context)
    affected: Set[str] = set(direct)
    queue = deque(sorted(direct))

    while queue:
        package = queue.popleft()
        for dependent in reverse.get(package, []):
            reason = f"Depends on affected package: {package}"
            if reason not in reasons[dependent]:
                reasons[dependent].append(reason)
            if dependent not in affected:
                affected.add(dependent)
                queue.append(dependent)

    logger.debug(
        "%d directly affected packages expanded to %d", len(direct), len(affected)
    )
    return [AffectedPackage(name=n, reasoning=list(reasons[n])) for n in sorted(affected)]


def find_affected_packages(
    workspace: str | Path | WorkspaceContext,
    changed_files: Iterable[str],
    ignore_patterns: Sequence[str] = (),
) -> List[str]:
    return [
        p.name
        for p in find_affected_packages_with_reasoning(workspace, changed_files, ignore_patterns)
    ]
