import pytest

from cimatrix.errors import PackageNotFound
from cimatrix.resolver import (
    activated_dependencies,
    enabled_feature_closure,
    find_workspace_dependencies,
)

from .conftest import package_toml, workspace_toml


@pytest.fixture
def optional_workspace(make_workspace):
    return make_workspace(
        {
            "Cargo.toml": workspace_toml(["packages/*"]),
            "packages/foo/Cargo.toml": package_toml(
                "foo",
                """
                [dependencies]
                leaf = { path = "../leaf" }
                """,
            ),
            "packages/leaf/Cargo.toml": package_toml("leaf"),
            "packages/bar/Cargo.toml": package_toml("bar"),
            "packages/baz/Cargo.toml": package_toml("baz"),
            "packages/qux/Cargo.toml": package_toml("qux"),
            "packages/tool/Cargo.toml": package_toml("tool"),
            "packages/app/Cargo.toml": package_toml(
                "app",
                """
                [features]
                default = ["x"]
                x = ["dep:foo"]
                y = ["bar/extra"]
                z = ["baz?/extra"]
                all = ["x", "y"]

                [dependencies]
                foo = { path = "../foo", optional = true }
                bar = { path = "../bar", optional = true }
                baz = { path = "../baz", optional = true }
                qux = { path = "../qux", optional = true }

                [dev-dependencies]
                tool = { path = "../tool" }
                """,
            ),
        }
    )


def _names(result):
    return [name for name, _ in result]


def test_default_features_activate_optional_dependency(optional_workspace):
    result = find_workspace_dependencies(optional_workspace, "app")
    assert _names(result) == ["foo", "leaf", "tool"]


def test_excluding_the_feature_drops_the_dependency(optional_workspace):
    assert _names(find_workspace_dependencies(optional_workspace, "app", enabled_features=[])) == ["tool"]


def test_slash_syntax_activates_but_question_mark_does_not(optional_workspace):
    assert "bar" in _names(find_workspace_dependencies(optional_workspace, "app", ["y"]))
    assert "baz" not in _names(find_workspace_dependencies(optional_workspace, "app", ["z"]))


def test_implicit_feature_named_after_dependency(optional_workspace):
    assert "qux" in _names(find_workspace_dependencies(optional_workspace, "app", ["qux"]))


def test_feature_references_are_followed(optional_workspace):
    assert _names(find_workspace_dependencies(optional_workspace, "app", ["all"])) == [
        "bar",
        "foo",
        "leaf",
        "tool",
    ]


def test_all_potential_follows_everything(optional_workspace):
    result = find_workspace_dependencies(optional_workspace, "app", all_potential=True)
    assert _names(result) == ["bar", "baz", "foo", "leaf", "qux", "tool"]
    paths = dict(result)
    assert paths["leaf"] == (optional_workspace / "packages" / "leaf").resolve()


def test_target_is_excluded_and_missing_target_raises(optional_workspace):
    assert "app" not in _names(find_workspace_dependencies(optional_workspace, "app", all_potential=True))
    with pytest.raises(PackageNotFound):
        find_workspace_dependencies(optional_workspace, "ghost")


def test_feature_helpers():
    table = {"default": ["a"], "a": ["b", "dep:x"], "b": ["y/feat", "z?/feat"]}
    enabled = enabled_feature_closure(table, ["default"])
    assert enabled == {"default", "a", "b"}
    assert activated_dependencies(table, enabled) == {"x", "y"}
