from cimatrix.classify import classify_dependency, iter_dependencies, workspace_dependencies
from cimatrix.manifest import load_manifest
from cimatrix.model import DependencyKind
from cimatrix.workspace import WorkspaceContext

from .conftest import package_toml, workspace_toml


def _workspace(make_workspace):
    return make_workspace(
        {
            "Cargo.toml": workspace_toml(
                ["packages/*"],
                """
                [workspace.dependencies]
                serde = "1.0"
                core_lib = { path = "packages/core", package = "core" }
                """,
            ),
            "packages/core/Cargo.toml": package_toml("core"),
            "packages/web/Cargo.toml": package_toml(
                "web",
                """
                [dependencies]
                core = { path = "../core" }
                serde = { workspace = true }
                tokio = "1"
                vendored = { path = "../../vendor/vendored" }
                core_lib = { workspace = true, optional = true }

                [dev-dependencies]
                pretty = "0.1"

                [target.'cfg(unix)'.build-dependencies]
                core_alias = { path = "../core", package = "core" }
                """,
            ),
            "vendor/vendored/Cargo.toml": package_toml("vendored"),
        }
    )


def test_classifies_each_kind(make_workspace):
    root = _workspace(make_workspace)
    ctx = WorkspaceContext(root)
    web = ctx.find_member("web")

    member = classify_dependency("core", {"path": "../core"}, web, ctx)
    assert member.kind is DependencyKind.WORKSPACE_MEMBER
    assert member.path == ctx.find_member("core")

    reference = classify_dependency("serde", {"workspace": True}, web, ctx)
    assert reference.kind is DependencyKind.WORKSPACE_REFERENCE

    assert classify_dependency("tokio", "1", web, ctx).kind is DependencyKind.EXTERNAL
    outside = classify_dependency("vendored", {"path": "../../vendor/vendored"}, web, ctx)
    assert outside.kind is DependencyKind.EXTERNAL


def test_optional_flag_and_rename(make_workspace):
    root = _workspace(make_workspace)
    ctx = WorkspaceContext(root)
    web = ctx.find_member("web")

    dep = classify_dependency("core_lib", {"workspace": True, "optional": True}, web, ctx)
    assert dep.optional
    assert dep.package == "core"
    assert dep.name == "core_lib"


def test_iter_dependencies_covers_all_sections(make_workspace):
    root = _workspace(make_workspace)
    ctx = WorkspaceContext(root)
    web = ctx.find_member("web")

    deps = list(iter_dependencies(load_manifest(web), web, ctx))
    assert [(d.name, d.section) for d in deps] == [
        ("core", "dependencies"),
        ("serde", "dependencies"),
        ("tokio", "dependencies"),
        ("vendored", "dependencies"),
        ("core_lib", "dependencies"),
        ("pretty", "dev-dependencies"),
        ("core_alias", "build-dependencies"),
    ]


def test_workspace_dependencies_keeps_confirmed_members(make_workspace):
    root = _workspace(make_workspace)
    ctx = WorkspaceContext(root)
    web = ctx.find_member("web")

    deps = workspace_dependencies(load_manifest(web), web, ctx)
    core_path = ctx.find_member("core")
    assert [(d.name, d.package, d.path) for d in deps] == [
        ("core", "core", core_path),
        ("core_lib", "core", core_path),
        ("core_alias", "core", core_path),
    ]
    assert deps[2].always_activated
    assert not deps[1].always_activated
