# classify.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from . import settings
from .model import DependencyDeclaration, DependencyKind
from .workspace import WorkspaceContext


def _workspace_dependency_table(context: WorkspaceContext) -> Dict[str, Any]:
    workspace = context.manifest.get("workspace")
    if not isinstance(workspace, dict):
        return {}
    table = workspace.get("dependencies")
    return table if isinstance(table, dict) else {}


def classify_dependency(
    name: str,
    value: Any,
    package_dir: Path,
    context: WorkspaceContext,
    section: str = "dependencies",
) -> DependencyDeclaration:
    """
    Label one dependency table entry.

    `path = "..."` resolving to a workspace member -> WORKSPACE_MEMBER.
    `workspace = true` -> WORKSPACE_REFERENCE; whether the referenced package
    is a member is confirmed later by name.
    Anything else (version string, git, registry, path outside the workspace)
    -> EXTERNAL.
    """
    if not isinstance(value, dict):
        return DependencyDeclaration(
            name=name, package=name, kind=DependencyKind.EXTERNAL, section=section
        )

    optional = bool(value.get("optional", False))
    package = str(value.get("package", name))

    if value.get("workspace") is True:
        # [workspace.dependencies] may rename or pin a path for the entry
        inherited = _workspace_dependency_table(context).get(name)
        path = None
        if isinstance(inherited, dict):
            package = str(value.get("package", inherited.get("package", name)))
            if isinstance(inherited.get("path"), str):
                path = context.root / inherited["path"]
        return DependencyDeclaration(
            name=name,
            package=package,
            kind=DependencyKind.WORKSPACE_REFERENCE,
            optional=optional,
            section=section,
            path=path,
        )

    raw_path = value.get("path")
    if isinstance(raw_path, str):
        dep_dir = package_dir / raw_path
        if context.is_member_by_path(dep_dir):
            return DependencyDeclaration(
                name=name,
                package=package,
                kind=DependencyKind.WORKSPACE_MEMBER,
                optional=optional,
                section=section,
                path=dep_dir.resolve(),
            )

    return DependencyDeclaration(
        name=name,
        package=package,
        kind=DependencyKind.EXTERNAL,
        optional=optional,
        section=section,
    )


def _dependency_tables(manifest: Dict[str, Any], sections: Sequence[str]):
    for section in sections:
        table = manifest.get(section)
        if isinstance(table, dict):
            yield section, table

    # [target.'cfg(...)'.dependencies] and friends
    targets = manifest.get("target")
    if isinstance(targets, dict):
        for target in targets.values():
            if not isinstance(target, dict):
                continue
            for section in sections:
                table = target.get(section)
                if isinstance(table, dict):
                    yield section, table


def iter_dependencies(
    manifest: Dict[str, Any],
    package_dir: Path,
    context: WorkspaceContext,
    sections: Sequence[str] = settings.DEPENDENCY_SECTIONS,
) -> Iterator[DependencyDeclaration]:
    for section, table in _dependency_tables(manifest, sections):
        for name, value in table.items():
            yield classify_dependency(name, value, package_dir, context, section)


def member_path(dep: DependencyDeclaration, context: WorkspaceContext) -> Optional[Path]:
    """Location of a dependency inside the workspace, or None when it is not a member."""
    if dep.kind is DependencyKind.WORKSPACE_MEMBER:
        return dep.path
    if dep.kind is DependencyKind.WORKSPACE_REFERENCE:
        found = context.find_member(dep.package)
        if found is not None:
            return found
        if dep.path is not None and context.is_member_by_path(dep.path):
            return dep.path.resolve()
    return None


def workspace_dependencies(
    manifest: Dict[str, Any],
    package_dir: Path,
    context: WorkspaceContext,
    sections: Sequence[str] = settings.DEPENDENCY_SECTIONS,
) -> List[DependencyDeclaration]:
    """
    Dependency edges that point at confirmed workspace members, in manifest
    order. `path` on each returned declaration is the member's canonical path.
    """
    out: List[DependencyDeclaration] = []
    for dep in iter_dependencies(manifest, package_dir, context, sections):
        location = member_path(dep, context)
        if location is None:
            continue
        out.append(
            DependencyDeclaration(
                name=dep.name,
                package=dep.package,
                kind=dep.kind,
                optional=dep.optional,
                section=dep.section,
                path=location,
            )
        )
    return out
