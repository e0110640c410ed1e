# model.py
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class DependencyKind(enum.Enum):
    WORKSPACE_MEMBER = "workspace_member"
    WORKSPACE_REFERENCE = "workspace_reference"
    EXTERNAL = "external"


@dataclass(frozen=True)
class DependencyDeclaration:
    """One entry of a manifest's dependency table, already classified."""
    name: str
    package: str
    kind: DependencyKind
    optional: bool = False
    section: str = "dependencies"
    path: Optional[Path] = None

    @property
    def always_activated(self) -> bool:
        # dev/build dependencies are never feature-gated
        return self.section != "dependencies"


@dataclass(frozen=True)
class Step:
    """A single command (step) to install a dependency or run in CI."""
    command: Optional[str] = None
    toolchain: Optional[str] = None
    features: Optional[Tuple[str, ...]] = None

    def enabled_for(self, features: Iterable[str]) -> bool:
        if self.features is None:
            return True
        enabled = set(features)
        return any(f in enabled for f in self.features)


@dataclass(frozen=True)
class EnvValue:
    value: str
    features: Optional[Tuple[str, ...]] = None

    def enabled_for(self, features: Iterable[str]) -> bool:
        if self.features is None:
            return True
        enabled = set(features)
        return any(f in enabled for f in self.features)


def _merge_steps(first: Tuple[Step, ...], second: Tuple[Step, ...]) -> Tuple[Step, ...]:
    seen = set()
    out: List[Step] = []
    for step in (*first, *second):
        if step in seen:
            continue
        seen.add(step)
        out.append(step)
    return tuple(out)


@dataclass(frozen=True)
class PropagatedConfig:
    """
    CI configuration for a package, including everything inherited from its
    workspace dependencies.

    Merge rules (associative per field):
      - git_submodules: True wins, then False, then unset (None)
      - dependencies / ci_steps: de-duplicated on the whole Step, first seen wins
      - env: last write wins
    """
    git_submodules: Optional[bool] = None
    dependencies: Tuple[Step, ...] = ()
    ci_steps: Tuple[Step, ...] = ()
    env: Mapping[str, EnvValue] = field(default_factory=dict)

    def merge(self, other: PropagatedConfig) -> PropagatedConfig:
        if self.git_submodules or other.git_submodules:
            git_submodules: Optional[bool] = True
        elif self.git_submodules is False or other.git_submodules is False:
            git_submodules = False
        else:
            git_submodules = None

        env: Dict[str, EnvValue] = dict(self.env)
        env.update(other.env)

        return PropagatedConfig(
            git_submodules=git_submodules,
            dependencies=_merge_steps(self.dependencies, other.dependencies),
            ci_steps=_merge_steps(self.ci_steps, other.ci_steps),
            env=env,
        )


@dataclass(frozen=True)
class FeaturePlan:
    """Output of the feature batch planner."""
    chunks: List[List[str]]
    chunked: bool
    seed: Optional[int] = None


@dataclass(frozen=True)
class JobDescriptor:
    """
    One generated CI job: package x OS config x feature chunk.

    Serialized with `to_dict()` using the field names CI matrices consume.
    """
    os: str
    path: str
    name: str
    features: List[str]
    required_features: List[str] = field(default_factory=list)
    nightly: bool = False
    dependencies: Optional[str] = None
    toolchains: Optional[str] = None
    env: Optional[str] = None
    cargo: Optional[str] = None
    ci_steps: Optional[str] = None
    ci_toolchains: Optional[str] = None
    git_submodules: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "os": self.os,
            "path": self.path,
            "name": self.name,
            "features": list(self.features),
        }
        if self.required_features:
            out["requiredFeatures"] = list(self.required_features)
        out["nightly"] = self.nightly
        optional = {
            "dependencies": self.dependencies,
            "toolchains": self.toolchains,
            "env": self.env,
            "cargo": self.cargo,
            "ciSteps": self.ci_steps,
            "ciToolchains": self.ci_toolchains,
        }
        for key, value in optional.items():
            if value:
                out[key] = value
        if self.git_submodules is not None:
            out["gitSubmodules"] = self.git_submodules
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class AffectedPackage:
    name: str
    reasoning: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WorkspaceToolchains:
    """Workspace-wide union of what CI runners must install for one OS."""
    dependencies: List[str] = field(default_factory=list)
    toolchains: List[str] = field(default_factory=list)
    ci_steps: List[str] = field(default_factory=list)
    ci_toolchains: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    nightly_packages: List[str] = field(default_factory=list)
    git_submodules: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependencies": list(self.dependencies),
            "toolchains": list(self.toolchains),
            "ci_steps": list(self.ci_steps),
            "ci_toolchains": list(self.ci_toolchains),
            "env": dict(self.env),
            "nightly_packages": list(self.nightly_packages),
            "git_submodules": self.git_submodules,
        }
