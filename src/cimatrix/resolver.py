# resolver.py
from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .classify import workspace_dependencies
from .errors import PackageNotFound
from .manifest import feature_table, load_manifest
from .model import DependencyDeclaration
from .workspace import WorkspaceContext, open_workspace

logger = logging.getLogger(__name__)


def enabled_feature_closure(
    features: Dict[str, List[str]],
    enabled: Iterable[str],
) -> Set[str]:
    """
    Every feature switched on by `enabled`, following feature -> feature
    references in the table.
    """
    out: Set[str] = set()
    queue = deque(enabled)
    while queue:
        name = queue.popleft()
        if name in out:
            continue
        out.add(name)
        for entry in features.get(name, []):
            if entry in features and entry not in out:
                queue.append(entry)
    return out


def activated_dependencies(features: Dict[str, List[str]], enabled: Set[str]) -> Set[str]:
    """
    Dependency names switched on by the enabled features.

    `dep:x` and `x/feat` enable x. `x?/feat` only forwards a feature to an
    already-enabled x. An optional dependency nobody references with `dep:`
    also gets an implicit feature of the same name.
    """
    names: Set[str] = set()
    for feature in enabled:
        for entry in features.get(feature, []):
            if entry.startswith("dep:"):
                names.add(entry[4:])
            elif "/" in entry:
                dep, _ = entry.split("/", 1)
                if not dep.endswith("?"):
                    names.add(dep)
    # implicit features
    names.update(f for f in enabled if f not in features)
    return names


def _follows(dep: DependencyDeclaration, all_potential: bool, activated: Set[str]) -> bool:
    if all_potential or not dep.optional or dep.always_activated:
        return True
    return dep.name in activated


def find_workspace_dependencies(
    workspace: str | Path | WorkspaceContext,
    target: str,
    enabled_features: Optional[Iterable[str]] = None,
    all_potential: bool = False,
) -> List[Tuple[str, Path]]:
    """
    Every workspace package reachable from `target` through dependency edges,
    as sorted (name, path) pairs, the target excluded.

    Optional edges are followed only when activated by the enabled features:
    `enabled_features` for the target (its `default` list when omitted), the
    `default` list for every package reached after it.
    """
    context = open_workspace(workspace)
    if context.find_member(target) is None:
        raise PackageNotFound(target, context.root)

    found: Dict[str, Path] = {}
    seen: Set[str] = {target}
    queue = deque([target])

    while queue:
        name = queue.popleft()
        package_dir = context.find_member(name)
        if package_dir is None:
            continue
        manifest = load_manifest(package_dir)
        features = feature_table(manifest)

        if name == target and enabled_features is not None:
            requested = list(enabled_features)
        else:
            requested = features.get("default", [])
        activated = activated_dependencies(features, enabled_feature_closure(features, requested))

        for dep in workspace_dependencies(manifest, package_dir, context):
            if not _follows(dep, all_potential, activated):
                logger.debug("%s: optional dependency %s not activated", name, dep.name)
                continue
            if dep.package in seen:
                continue
            seen.add(dep.package)
            found[dep.package] = dep.path
            queue.append(dep.package)

    return sorted(found.items())
