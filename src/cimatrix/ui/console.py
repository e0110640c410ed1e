"""Console output formatting utilities for cimatrix."""

from __future__ import annotations

import json
import sys
from typing import Any, Iterable, Optional

from ..model import AffectedPackage, WorkspaceToolchains


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, pretty: bool = False):
        """
        Args:
            debug: If True, show detailed output including stack traces
            pretty: If True, indent JSON output
        """
        self.debug = debug
        self.pretty = pretty

    def print_json(self, data: Any) -> None:
        print(json.dumps(data, indent=2 if self.pretty else None))

    def print_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            print(line)

    def print_affected(self, packages: list[AffectedPackage]) -> None:
        """Raw listing of affected packages and why each was picked."""
        for package in packages:
            print(package.name)
            for reason in package.reasoning:
                print(f"  {reason}")

    def print_toolchains(self, toolchains: WorkspaceToolchains) -> None:
        sections = [
            ("Dependencies:", toolchains.dependencies),
            ("Toolchains:", toolchains.toolchains),
            ("CI Steps:", toolchains.ci_steps),
            ("CI Toolchains:", toolchains.ci_toolchains),
            ("Env:", [f"{k}={v}" for k, v in toolchains.env.items()]),
            ("Nightly packages:", toolchains.nightly_packages),
        ]
        for title, items in sections:
            print(title)
            for item in items:
                print(f"  {item}")
        print(f"Git submodules: {'yes' if toolchains.git_submodules else 'no'}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(exc)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
