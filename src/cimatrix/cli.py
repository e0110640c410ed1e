# cli.py
from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import click

from . import settings
from .affected import find_affected_packages_with_reasoning
from .errors import CIMatrixError, WorkspaceRootNotFound
from .git_facts.git import changed_files as git_changed_files
from .jobs import JobOptions, generate_workspace_jobs
from .resolver import find_workspace_dependencies
from .toolchains import collect_workspace_toolchains
from .ui.console import Console, get_console, set_console
from .workspace import WorkspaceContext, find_workspace_root

OUTPUT_TYPES = click.Choice(["json", "raw"])


def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _open(path: str) -> tuple[WorkspaceContext, Path]:
    """
    Workspace context for `path` plus the resolved path itself.

    `path` may be the workspace root, a member directory, or a standalone
    package.
    """
    target = Path(path).resolve()
    try:
        root = find_workspace_root(target)
    except WorkspaceRootNotFound:
        root = target
    return WorkspaceContext(root), target


def _collect_changed_files(
    root: Path,
    changed: Optional[str],
    git_base: Optional[str],
    git_head: str,
) -> Optional[List[str]]:
    files = _split_csv(changed)
    if git_base is None:
        return files
    console = get_console()
    console.print_debug(f"diffing {git_base}..{git_head} in {root}")
    return [*(files or []), *git_changed_files(git_base, git_head, cwd=root)]


def _fail(ctx: click.Context, exc: Exception) -> None:
    console = get_console()
    if isinstance(exc, CIMatrixError):
        details = [f"{k}={v}" for k, v in exc.details.items()]
        if exc.path:
            details.insert(0, f"path={exc.path}")
        console.print_error(exc.kind, exc.message, details=details or None)
    elif isinstance(exc, subprocess.CalledProcessError):
        console.print_error(
            "Git command failed",
            f"git exited with status {exc.returncode}",
            suggestion="Check that --git-base/--git-head name existing refs.",
        )
    elif isinstance(exc, FileNotFoundError):
        console.print_error(
            "Git command not found",
            "Could not find git command.",
            suggestion="Install Git or pass --changed-files explicitly.",
        )
    if ctx.obj.get("debug", False) or not isinstance(exc, HANDLED):
        console.print_exception(exc)
    sys.exit(1)


# Errors a command turns into a clean message and exit status 1
HANDLED = (CIMatrixError, subprocess.CalledProcessError, FileNotFoundError)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (debug logging and stack traces)",
)
@click.option("--pretty", is_flag=True, default=False, help="Indent JSON output")
@click.pass_context
def cli(ctx, debug, pretty):
    """cimatrix: CI matrix generation for Cargo workspaces."""
    logging.basicConfig(
        level=logging.DEBUG if debug else settings.LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    set_console(Console(debug=debug, pretty=pretty))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--os", "os_filter", default=None, help="Only config blocks for this OS")
@click.option("--offset", default=0, type=click.IntRange(min=0), help="Skip the first N features")
@click.option("--max", "max_features", default=None, type=click.IntRange(min=0), help="Use at most N features")
@click.option("--max-parallel", default=None, type=click.IntRange(min=1), help="Re-pack into at most N jobs")
@click.option("--chunked", default=None, type=click.IntRange(min=1), help="At most N features per job")
@click.option("--spread", is_flag=True, default=False, help="Balance features across chunks")
@click.option("--randomize", is_flag=True, default=False, help="Shuffle features before chunking")
@click.option("--seed", default=None, type=int, help="Seed for --randomize")
@click.option("--features", default=None, help="Comma-separated feature patterns to include")
@click.option("--skip-features", default=None, help="Comma-separated feature patterns to skip")
@click.option("--required-features", default=None, help="Comma-separated features every job requires")
@click.option("--packages", default=None, help="Comma-separated package patterns")
@click.option("--changed-files", default=None, help="Comma-separated changed paths")
@click.option("--git-base", default=None, help="Diff from this ref to find changed files")
@click.option("--git-head", default="HEAD", show_default=True, help="Diff up to this ref")
@click.option("--ignore", "ignore_patterns", multiple=True, help="Changed-file pattern to ignore (repeatable)")
@click.option("--output", default="json", type=OUTPUT_TYPES, show_default=True)
@click.pass_context
def features(
    ctx, path, os_filter, offset, max_features, max_parallel, chunked, spread, randomize,
    seed, features, skip_features, required_features, packages, changed_files, git_base,
    git_head, ignore_patterns, output,
):
    """Generate CI jobs (package x OS x feature chunk) as JSON."""
    console = get_console()
    try:
        context, target = _open(path)
        options = JobOptions(
            os=os_filter,
            offset=offset,
            max_features=max_features,
            chunked=chunked,
            spread=spread,
            randomize=randomize,
            seed=seed,
            features=_split_csv(features),
            skip_features=_split_csv(skip_features) or (),
            required_features=_split_csv(required_features) or (),
            max_parallel=max_parallel,
            packages=_split_csv(packages),
            changed_files=_collect_changed_files(context.root, changed_files, git_base, git_head),
            ignore_patterns=tuple(ignore_patterns),
        )
        member = context.member_name_for_path(target) if target != context.root else None
        if member is not None and options.packages is None:
            # pointed at one member: only that package
            options = replace(options, packages=[member])
        jobs = generate_workspace_jobs(context, options)
    except HANDLED as e:
        _fail(ctx, e)
        return

    if output == "raw":
        console.print_lines(job.to_json() for job in jobs)
    else:
        console.print_json([job.to_dict() for job in jobs])


@cli.command("affected-packages")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--changed-files", default=None, help="Comma-separated changed paths")
@click.option("--git-base", default=None, help="Diff from this ref to find changed files")
@click.option("--git-head", default="HEAD", show_default=True, help="Diff up to this ref")
@click.option("--ignore", "ignore_patterns", multiple=True, help="Changed-file pattern to ignore (repeatable)")
@click.option("--target", default=None, help="Only report whether this package is affected")
@click.option("--reasoning", is_flag=True, default=False, help="Include why each package is affected")
@click.option("--output", default="json", type=OUTPUT_TYPES, show_default=True)
@click.pass_context
def affected_packages(ctx, path, changed_files, git_base, git_head, ignore_patterns, target, reasoning, output):
    """List packages affected by a set of changed files."""
    console = get_console()
    try:
        context, _ = _open(path)
        files = _collect_changed_files(context.root, changed_files, git_base, git_head) or []
        affected = find_affected_packages_with_reasoning(context, files, ignore_patterns)
    except HANDLED as e:
        _fail(ctx, e)
        return

    if target is not None:
        hit = next((p for p in affected if p.name == target), None)
        result = {"package": target, "affected": hit is not None}
        if reasoning:
            result["reasoning"] = hit.reasoning if hit else []
        if output == "raw":
            console.print_lines(["true" if hit else "false"])
        else:
            console.print_json(result)
        return

    if output == "raw":
        if reasoning:
            console.print_affected(affected)
        else:
            console.print_lines(p.name for p in affected)
    elif reasoning:
        console.print_json([{"name": p.name, "reasoning": p.reasoning} for p in affected])
    else:
        console.print_json([p.name for p in affected])


@cli.command("workspace-deps")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("target")
@click.option("--features", default=None, help="Comma-separated enabled features (default: the package's defaults)")
@click.option("--all-potential", is_flag=True, default=False, help="Follow every optional dependency")
@click.option("--output", default="json", type=OUTPUT_TYPES, show_default=True)
@click.pass_context
def workspace_deps(ctx, path, target, features, all_potential, output):
    """List the workspace packages TARGET depends on, transitively."""
    console = get_console()
    try:
        context, _ = _open(path)
        deps = find_workspace_dependencies(
            context,
            target,
            enabled_features=_split_csv(features),
            all_potential=all_potential,
        )
    except HANDLED as e:
        _fail(ctx, e)
        return

    if output == "raw":
        console.print_lines(f"{name} {context.relative_path(p)}" for name, p in deps)
    else:
        console.print_json([{"name": name, "path": context.relative_path(p)} for name, p in deps])


@cli.command("workspace-toolchains")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--os", "os_name", default=settings.DEFAULT_OS, show_default=True, help="Runner OS")
@click.option("--output", default="json", type=OUTPUT_TYPES, show_default=True)
@click.pass_context
def workspace_toolchains(ctx, path, os_name, output):
    """Everything a runner for --os must install to build the workspace."""
    console = get_console()
    try:
        context, _ = _open(path)
        toolchains = collect_workspace_toolchains(context, os_name)
    except HANDLED as e:
        _fail(ctx, e)
        return

    if output == "raw":
        console.print_toolchains(toolchains)
    else:
        console.print_json(toolchains.to_dict())


if __name__ == "__main__":
    cli()
