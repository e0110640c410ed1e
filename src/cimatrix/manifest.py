# manifest.py
# All reads of Cargo.toml / cimatrix.toml go through here so the rest of the
# package never touches tomllib or raw file I/O directly.

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import settings
from .errors import ManifestNotFound, ManifestParseError
from .model import EnvValue, PropagatedConfig, Step

logger = logging.getLogger(__name__)


def load_toml(path: Path) -> Dict[str, Any]:
    """
    Read and parse a TOML file.

    Raises:
        ManifestNotFound: the file does not exist
        ManifestParseError: the file is not valid TOML
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ManifestNotFound(path) from None
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestParseError(path, str(e)) from e


def manifest_path(package_dir: Path) -> Path:
    return package_dir / settings.MANIFEST_FILENAME


def load_manifest(package_dir: Path) -> Dict[str, Any]:
    return load_toml(manifest_path(package_dir))


def package_name(manifest: Dict[str, Any]) -> Optional[str]:
    package = manifest.get("package")
    if not isinstance(package, dict):
        return None
    name = package.get("name")
    return name if isinstance(name, str) else None


def read_package_name(package_dir: Path) -> Optional[str]:
    """Best-effort name lookup used during member discovery."""
    try:
        return package_name(load_manifest(package_dir))
    except (ManifestNotFound, ManifestParseError) as e:
        logger.debug("cannot read package name in %s: %s", package_dir, e)
        return None


def feature_table(manifest: Dict[str, Any]) -> Dict[str, List[str]]:
    features = manifest.get("features")
    if not isinstance(features, dict):
        return {}
    return {
        str(k): [str(x) for x in v] if isinstance(v, list) else []
        for k, v in features.items()
    }


# ---------------------------------------------------------------------
# cimatrix.toml schema
# ---------------------------------------------------------------------

class StepEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    command: Optional[str] = None
    toolchain: Optional[str] = None
    features: Optional[List[str]] = None

    def to_step(self) -> Step:
        return Step(
            command=self.command,
            toolchain=self.toolchain,
            features=tuple(self.features) if self.features is not None else None,
        )


class EnvEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str
    features: Optional[List[str]] = None


def _one_or_many(value: Any) -> Any:
    if value is None or isinstance(value, list):
        return value
    return [value]


class _StepsAndEnv(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ci_steps: Optional[List[StepEntry]] = Field(default=None, alias="ci-steps")
    dependencies: Optional[List[StepEntry]] = None
    cargo: Optional[List[str]] = None
    env: Optional[Dict[str, Union[str, EnvEntry]]] = None
    nightly: Optional[bool] = None
    git_submodules: Optional[bool] = Field(default=None, alias="git-submodules")

    @field_validator("ci_steps", "dependencies", "cargo", mode="before")
    @classmethod
    def _accept_single_item(cls, value: Any) -> Any:
        return _one_or_many(value)

    def steps(self) -> Tuple[Step, ...]:
        return tuple(s.to_step() for s in self.dependencies or [])

    def ci_step_list(self) -> Tuple[Step, ...]:
        return tuple(s.to_step() for s in self.ci_steps or [])

    def env_values(self) -> Dict[str, EnvValue]:
        out: Dict[str, EnvValue] = {}
        for key, entry in (self.env or {}).items():
            if isinstance(entry, str):
                out[key] = EnvValue(value=entry)
            else:
                features = tuple(entry.features) if entry.features is not None else None
                out[key] = EnvValue(value=entry.value, features=features)
        return out

    def as_propagated(self) -> PropagatedConfig:
        return PropagatedConfig(
            git_submodules=self.git_submodules,
            dependencies=self.steps(),
            ci_steps=self.ci_step_list(),
            env=self.env_values(),
        )


class OsConfig(_StepsAndEnv):
    """One [[config]] block: settings for a single runner OS."""
    os: str
    name: Optional[str] = None
    skip_features: Optional[List[str]] = Field(default=None, alias="skip-features")
    required_features: Optional[List[str]] = Field(default=None, alias="required-features")


class ParallelizationConfig(BaseModel):
    chunked: int = Field(ge=1)


class PackageConfig(_StepsAndEnv):
    """Top level of a cimatrix.toml file."""
    config: List[OsConfig] = Field(default_factory=list)
    parallelization: Optional[ParallelizationConfig] = None

    def blocks_for(self, os_filter: Optional[str]) -> List[OsConfig]:
        if os_filter is None:
            return list(self.config)
        return [c for c in self.config if c.os == os_filter]

    def own_config(self, os_filter: Optional[str]) -> PropagatedConfig:
        """Top-level settings merged with every block matching `os_filter`."""
        merged = self.as_propagated()
        for block in self.blocks_for(os_filter):
            merged = merged.merge(block.as_propagated())
        return merged

    def block_config(self, block: OsConfig) -> PropagatedConfig:
        """
        Settings for a single block. The block's git-submodules value
        overrides the top-level one instead of merging with it.
        """
        base = self.as_propagated()
        own = block.as_propagated()
        git_submodules = block.git_submodules
        if git_submodules is None:
            git_submodules = self.git_submodules
        merged = base.merge(own)
        return PropagatedConfig(
            git_submodules=git_submodules,
            dependencies=merged.dependencies,
            ci_steps=merged.ci_steps,
            env=merged.env,
        )

    def nightly_for(self, block: OsConfig) -> bool:
        if block.nightly is not None:
            return block.nightly
        return bool(self.nightly)


def config_path(package_dir: Path) -> Path:
    return package_dir / settings.CONFIG_FILENAME


def load_package_config(package_dir: Path) -> Optional[PackageConfig]:
    """
    Load a package's (or the workspace's) cimatrix.toml.

    Returns None when the file does not exist; a missing config is not an error.
    """
    path = config_path(package_dir)
    if not path.is_file():
        return None
    data = load_toml(path)
    try:
        return PackageConfig.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(path, str(e)) from e
