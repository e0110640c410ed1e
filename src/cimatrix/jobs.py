# jobs.py
from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from . import settings
from .affected import find_affected_packages
from .batching import plan_features, rechunk_jobs
from .errors import PackageNotFound
from .manifest import (
    OsConfig,
    PackageConfig,
    feature_table,
    load_manifest,
    load_package_config,
    package_name,
)
from .model import JobDescriptor, PropagatedConfig, Step
from .patterns import expand, should_skip
from .propagate import inherited_config
from .workspace import WorkspaceContext, open_workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOptions:
    """
    Knobs shared by package and workspace job generation.

    features / skip_features / packages are pattern lists (`*`, `?`, `!neg`).
    """
    os: Optional[str] = None
    offset: int = 0
    max_features: Optional[int] = None
    chunked: Optional[int] = None
    spread: bool = False
    randomize: bool = False
    seed: Optional[int] = None
    features: Optional[Sequence[str]] = None
    skip_features: Sequence[str] = ()
    required_features: Sequence[str] = ()
    max_parallel: Optional[int] = None
    packages: Optional[Sequence[str]] = None
    changed_files: Optional[Sequence[str]] = None
    ignore_patterns: Sequence[str] = field(default_factory=tuple)


# ---------------------------------------------------------------------
# Feature selection
# ---------------------------------------------------------------------

def select_features(
    declared: Iterable[str],
    options: JobOptions,
    block_skip: Sequence[str] = (),
) -> List[str]:
    """
    Filter a package's declared features for one config block.

    Hidden features (leading `_`) never show up. Block skip patterns are
    evaluated before the caller's, so the caller has the last word.
    """
    available = [f for f in declared if not f.startswith("_")]

    if options.features is not None:
        wanted = set(expand(options.features, available))
        available = [f for f in available if f in wanted]

    skip = [*block_skip, *options.skip_features]
    if skip:
        available = [f for f in available if not should_skip(f, skip)]

    available = available[options.offset:]
    if options.max_features is not None:
        available = available[:options.max_features]
    return available


def _unique(items: Iterable[str]) -> List[str]:
    out: List[str] = []
    for item in items:
        if item not in out:
            out.append(item)
    return out


def _commands(steps: Iterable[Step]) -> Optional[str]:
    return "\n".join(_unique(s.command for s in steps if s.command)) or None


def _toolchains(steps: Iterable[Step]) -> Optional[str]:
    return "\n".join(_unique(s.toolchain for s in steps if s.toolchain)) or None


def _env_lines(config: PropagatedConfig, gate: List[str]) -> Optional[str]:
    lines = [
        f"{key}={json.dumps(entry.value)}"
        for key, entry in config.env.items()
        if entry.enabled_for(gate)
    ]
    return "\n".join(lines) or None


def _cargo(conf: Optional[PackageConfig], block: OsConfig) -> Optional[str]:
    args = [*((conf.cargo or []) if conf else []), *(block.cargo or [])]
    return " ".join(args) or None


# ---------------------------------------------------------------------
# Job generation
# ---------------------------------------------------------------------

def _blocks(conf: Optional[PackageConfig], os_filter: Optional[str]) -> List[OsConfig]:
    if conf is None or not conf.config:
        blocks = [OsConfig(os=settings.DEFAULT_OS)]
    else:
        blocks = list(conf.config)
    if os_filter is None:
        return blocks
    return [b for b in blocks if b.os == os_filter]


def generate_package_jobs(
    workspace: str | Path | WorkspaceContext,
    package_dir: str | Path,
    options: Optional[JobOptions] = None,
) -> List[JobDescriptor]:
    """
    One job per (config block x feature chunk) of the package in `package_dir`.

    Steps and env entries gated on features are kept only when the chunk (or
    the required features) enables one of them. Configuration inherited from
    workspace dependencies is merged under the block's own settings.
    """
    context = open_workspace(workspace)
    options = options or JobOptions()
    package_dir = Path(package_dir)
    if not package_dir.is_absolute():
        package_dir = context.root / package_dir

    manifest = load_manifest(package_dir)
    name = package_name(manifest)
    if name is None:
        logger.debug("%s has no [package] table, no jobs", package_dir)
        return []

    conf = load_package_config(package_dir)
    declared = list(feature_table(manifest))
    rel_path = context.relative_path(package_dir)

    chunk_size = options.chunked
    if conf is not None and conf.parallelization is not None:
        chunk_size = conf.parallelization.chunked

    is_member = context.find_member(name) is not None

    jobs: List[JobDescriptor] = []
    for block in _blocks(conf, options.os):
        inherited = PropagatedConfig()
        if is_member:
            inherited = inherited_config(context, name, block.os)
        own = conf.block_config(block) if conf is not None else block.as_propagated()
        config = inherited.merge(own)

        selected = select_features(declared, options, block.skip_features or ())
        required = _unique([*(block.required_features or []), *options.required_features])
        plan = plan_features(
            selected,
            chunk_size=chunk_size,
            spread=options.spread,
            randomize=options.randomize,
            seed=options.seed,
        )

        for chunk in plan.chunks:
            gate = [*chunk, *required]
            deps = [s for s in config.dependencies if s.enabled_for(gate)]
            ci_steps = [s for s in config.ci_steps if s.enabled_for(gate)]
            jobs.append(
                JobDescriptor(
                    os=block.os,
                    path=rel_path,
                    name=block.name or name,
                    features=list(chunk),
                    required_features=list(required),
                    nightly=conf.nightly_for(block) if conf is not None else bool(block.nightly),
                    dependencies=_commands(deps),
                    toolchains=_toolchains(deps),
                    env=_env_lines(config, gate),
                    cargo=_cargo(conf, block),
                    ci_steps=_commands(ci_steps),
                    ci_toolchains=_toolchains(ci_steps),
                    git_submodules=config.git_submodules,
                )
            )

    logger.debug("%s: %d jobs", name, len(jobs))
    return jobs


def _selected_members(context: WorkspaceContext, options: JobOptions) -> List[Tuple[str, Path]]:
    members = list(context.members().items())

    if options.packages is not None:
        wanted = expand(options.packages, [n for n, _ in members])
        unknown = [n for n in wanted if context.find_member(n) is None]
        if unknown:
            raise PackageNotFound(unknown[0], context.root)
        members = [(n, p) for n, p in members if n in wanted]

    if options.changed_files is not None:
        affected = set(
            find_affected_packages(context, options.changed_files, options.ignore_patterns)
        )
        members = [(n, p) for n, p in members if n in affected]

    return members


def generate_workspace_jobs(
    workspace: str | Path | WorkspaceContext,
    options: Optional[JobOptions] = None,
) -> List[JobDescriptor]:
    """
    Jobs for every selected workspace member, in declaration order.

    Members can be narrowed by name patterns and by the packages affected by
    a list of changed files. With `max_parallel`, the result is re-packed into
    at most that many jobs; without `chunked` it also serves as chunk size.
    """
    context = open_workspace(workspace)
    options = options or JobOptions()

    package_options = options
    if options.chunked is None and options.max_parallel is not None:
        package_options = replace(package_options, chunked=options.max_parallel)
    if options.randomize and options.seed is None:
        # one seed for the whole run so it can be replayed
        seed = random.SystemRandom().randrange(2**63)
        logger.info("generated shuffle seed %d", seed)
        package_options = replace(package_options, seed=seed)

    jobs: List[JobDescriptor] = []
    for _, package_dir in _selected_members(context, options):
        jobs.extend(generate_package_jobs(context, package_dir, package_options))

    if options.max_parallel is not None:
        jobs = rechunk_jobs(jobs, options.max_parallel, options.chunked)
    return jobs
