# toolchains.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from .manifest import PackageConfig, load_package_config
from .model import PropagatedConfig, WorkspaceToolchains
from .propagate import collect_propagated
from .workspace import WorkspaceContext, open_workspace

logger = logging.getLogger(__name__)


def _nightly_for_os(conf: PackageConfig, os: str) -> bool:
    blocks = conf.blocks_for(os)
    if not blocks:
        return bool(conf.nightly)
    return any(conf.nightly_for(b) for b in blocks)


def _add(out: List[str], value) -> None:
    if value and value not in out:
        out.append(value)


def collect_workspace_toolchains(
    workspace: str | Path | WorkspaceContext,
    os: str,
) -> WorkspaceToolchains:
    """
    Everything a runner for `os` has to install to build any member.

    Sources are the workspace-level config file followed by each member's
    propagated config for `os`. Env values from members override the
    workspace's.
    """
    context = open_workspace(workspace)

    configs: List[PropagatedConfig] = []
    root_conf = load_package_config(context.root)
    if root_conf is not None:
        configs.append(root_conf.own_config(os))

    nightly: List[str] = []
    cache: Dict = {}
    for name, package_dir in context.members().items():
        configs.append(collect_propagated(context, name, os, cache=cache))
        conf = load_package_config(package_dir)
        if conf is not None and _nightly_for_os(conf, os):
            nightly.append(name)

    result = WorkspaceToolchains(nightly_packages=sorted(nightly))
    for config in configs:
        for step in config.dependencies:
            _add(result.dependencies, step.command)
            _add(result.toolchains, step.toolchain)
        for step in config.ci_steps:
            _add(result.ci_steps, step.command)
            _add(result.ci_toolchains, step.toolchain)
        for key, entry in config.env.items():
            result.env[key] = entry.value

    git_submodules = any(c.git_submodules for c in configs)
    logger.debug(
        "%s: %d dependency commands, %d toolchains, %d nightly packages",
        os,
        len(result.dependencies),
        len(result.toolchains),
        len(result.nightly_packages),
    )
    return WorkspaceToolchains(
        dependencies=result.dependencies,
        toolchains=result.toolchains,
        ci_steps=result.ci_steps,
        ci_toolchains=result.ci_toolchains,
        env=result.env,
        nightly_packages=result.nightly_packages,
        git_submodules=git_submodules,
    )
