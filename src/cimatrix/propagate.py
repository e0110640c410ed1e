# propagate.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from .classify import workspace_dependencies
from .errors import CIMatrixError, PackageNotFound
from .manifest import load_manifest, load_package_config
from .model import DependencyDeclaration, PropagatedConfig
from .workspace import WorkspaceContext

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Optional[str]]


def _member_dependencies(context: WorkspaceContext, package_name: str) -> List[DependencyDeclaration]:
    package_dir = context.find_member(package_name)
    if package_dir is None:
        raise PackageNotFound(package_name, context.root)

    seen: Set[str] = set()
    deps: List[DependencyDeclaration] = []
    for dep in workspace_dependencies(load_manifest(package_dir), package_dir, context):
        if dep.package in seen or dep.package == package_name:
            continue
        seen.add(dep.package)
        deps.append(dep)
    return deps


def _inherit(
    context: WorkspaceContext,
    package_name: str,
    os_filter: Optional[str],
    visited: Set[str],
    cache: Dict[CacheKey, PropagatedConfig],
) -> PropagatedConfig:
    merged = PropagatedConfig()
    for dep in _member_dependencies(context, package_name):
        try:
            contribution = collect_propagated(context, dep.package, os_filter, visited, cache)
        except CIMatrixError as e:
            # a failing dependency contributes nothing
            logger.warning(
                "skipping config of %s (dependency of %s): %s",
                dep.package,
                package_name,
                e,
            )
            continue
        merged = merged.merge(contribution)
    return merged


def collect_propagated(
    context: WorkspaceContext,
    package_name: str,
    os_filter: Optional[str] = None,
    visited: Optional[Set[str]] = None,
    cache: Optional[Dict[CacheKey, PropagatedConfig]] = None,
) -> PropagatedConfig:
    """
    Merged CI configuration of `package_name`: everything its workspace
    dependencies propagate (in manifest order), then its own settings on top.

    `visited` holds the packages on the current recursion stack; reaching one
    of them again returns an empty config. `cache` memoizes results per
    (package, os_filter) for the lifetime of one top-level call.
    """
    visited = set() if visited is None else visited
    cache = {} if cache is None else cache

    key = (package_name, os_filter)
    hit = cache.get(key)
    if hit is not None:
        return hit

    if package_name in visited:
        logger.debug("dependency cycle through %s, not descending again", package_name)
        return PropagatedConfig()

    package_dir = context.find_member(package_name)
    if package_dir is None:
        raise PackageNotFound(package_name, context.root)

    visited.add(package_name)
    try:
        merged = _inherit(context, package_name, os_filter, visited, cache)
        conf = load_package_config(package_dir)
        if conf is not None:
            merged = merged.merge(conf.own_config(os_filter))
    finally:
        visited.discard(package_name)

    cache[key] = merged
    return merged


def inherited_config(
    context: WorkspaceContext,
    package_name: str,
    os_filter: Optional[str] = None,
    cache: Optional[Dict[CacheKey, PropagatedConfig]] = None,
) -> PropagatedConfig:
    """Only what `package_name` inherits from its dependencies, without its own settings."""
    cache = {} if cache is None else cache
    visited = {package_name}
    return _inherit(context, package_name, os_filter, visited, cache)
