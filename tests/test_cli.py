import json

import pytest
from click.testing import CliRunner

import cimatrix.cli as cli_module
from cimatrix.cli import cli

from .conftest import package_toml, workspace_toml


@pytest.fixture
def runner():
    return CliRunner()


def test_features_command_outputs_jobs(runner, chain_workspace):
    result = runner.invoke(cli, ["features", str(chain_workspace), "--os", "ubuntu"])
    assert result.exit_code == 0, result.output
    jobs = json.loads(result.stdout)
    assert [j["name"] for j in jobs] == ["a", "b", "c"]
    assert jobs[0] == {"os": "ubuntu", "path": "packages/a", "name": "a", "features": [], "nightly": False}


def test_features_for_a_member_directory(runner, chain_workspace):
    result = runner.invoke(cli, ["features", str(chain_workspace / "packages" / "b")])
    assert result.exit_code == 0, result.output
    assert [j["name"] for j in json.loads(result.stdout)] == ["b"]


def test_features_raw_output(runner, chain_workspace):
    result = runner.invoke(cli, ["features", str(chain_workspace), "--packages", "c", "--output", "raw"])
    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["name"] == "c"


def test_affected_packages_with_reasoning(runner, chain_workspace):
    result = runner.invoke(
        cli,
        [
            "affected-packages",
            str(chain_workspace),
            "--changed-files",
            "packages/a/src/lib.rs,docs/readme.md",
            "--reasoning",
        ],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {"name": "a", "reasoning": ["Contains changed file: packages/a/src/lib.rs"]},
        {"name": "b", "reasoning": ["Depends on affected package: a"]},
    ]


def test_affected_packages_target(runner, chain_workspace):
    result = runner.invoke(
        cli,
        ["affected-packages", str(chain_workspace), "--changed-files", "packages/a/x.rs", "--target", "c"],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"package": "c", "affected": False}


def test_affected_packages_from_git(runner, chain_workspace, monkeypatch):
    seen = {}

    def fake_changed_files(base, head, cwd=None):
        seen.update(base=base, head=head, cwd=cwd)
        return ["packages/c/src/lib.rs"]

    monkeypatch.setattr(cli_module, "git_changed_files", fake_changed_files)
    result = runner.invoke(
        cli, ["affected-packages", str(chain_workspace), "--git-base", "origin/main"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == ["c"]
    assert seen == {"base": "origin/main", "head": "HEAD", "cwd": chain_workspace.resolve()}


def test_invalid_ignore_pattern_fails_cleanly(runner, chain_workspace):
    result = runner.invoke(
        cli,
        ["affected-packages", str(chain_workspace), "--changed-files", "packages/a/x.rs", "--ignore", "[a"],
    )
    assert result.exit_code == 1
    assert "invalid_pattern" in result.stderr


def test_workspace_deps(runner, chain_workspace):
    result = runner.invoke(cli, ["workspace-deps", str(chain_workspace), "b"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [{"name": "a", "path": "packages/a"}]


def test_workspace_deps_unknown_package(runner, chain_workspace):
    result = runner.invoke(cli, ["workspace-deps", str(chain_workspace), "ghost"])
    assert result.exit_code == 1
    assert "package_not_found" in result.stderr


def test_workspace_toolchains(runner, make_workspace):
    root = make_workspace(
        {
            "Cargo.toml": workspace_toml(["packages/*"]),
            "packages/p/Cargo.toml": package_toml("p"),
            "packages/p/cimatrix.toml": """
                nightly = true
                dependencies = [{ command = "apt-get install -y cmake", toolchain = "apt" }]
            """,
        }
    )
    result = runner.invoke(cli, ["workspace-toolchains", str(root), "--os", "ubuntu"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["dependencies"] == ["apt-get install -y cmake"]
    assert data["nightly_packages"] == ["p"]

    raw = runner.invoke(cli, ["workspace-toolchains", str(root), "--output", "raw"])
    assert "Nightly packages:" in raw.stdout
    assert "  p" in raw.stdout


def test_debug_prints_traceback_for_handled_errors(runner, chain_workspace):
    result = runner.invoke(cli, ["--debug", "workspace-deps", str(chain_workspace), "ghost"])
    assert result.exit_code == 1
    assert "package_not_found" in result.stderr
    assert "Traceback" in result.stderr
