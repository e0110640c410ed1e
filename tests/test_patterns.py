import logging
import warnings

import pytest

from cimatrix.errors import InvalidPatternError
from cimatrix.patterns import (
    FeaturePattern,
    compile_path_patterns,
    expand,
    is_ignored,
    matches,
    should_skip,
)


def test_last_match_wins():
    patterns = ["*", "!keep"]
    assert should_skip("keep", patterns) is False
    assert should_skip("anything-else", patterns) is True


def test_pattern_order_matters():
    assert should_skip("x", ["*", "!x"]) is False
    assert should_skip("x", ["!x", "*"]) is True


def test_no_match_means_keep():
    assert should_skip("a", []) is False
    assert should_skip("a", ["b", "c*"]) is False


def test_matches_exact_and_glob():
    assert matches("fail-on-warnings", "fail-on-warnings")
    assert not matches("fail-on-warnings", "fail-on")
    assert matches("fail-on-warnings", "fail-on-*")
    assert matches("v2", "v?")
    assert not matches("v10", "v?")


def test_parsed_pattern_is_tagged():
    p = FeaturePattern.parse("!simulator-*")
    assert p.negated and p.glob
    assert p.body == "simulator-*"
    assert p.hits("simulator-net")

    exact = FeaturePattern.parse("default")
    assert not exact.negated and not exact.glob
    assert exact.regex is None


def test_expand_keeps_exact_names_verbatim():
    assert expand(["not-declared"], ["a", "b"]) == ["not-declared"]


def test_expand_globs_against_available_in_order():
    available = ["db-sqlite", "api", "db-postgres", "db-mysql"]
    assert expand(["db-*"], available) == ["db-sqlite", "db-postgres", "db-mysql"]


def test_expand_negation_removes_earlier_inclusions():
    available = ["db-sqlite", "db-postgres", "api"]
    assert expand(["api", "db-*", "!db-postgres"], available) == ["api", "db-sqlite"]
    assert expand(["db-*", "!db-*"], available) == []


def test_expand_does_not_duplicate():
    assert expand(["a", "*", "a"], ["a", "b"]) == ["a", "b"]


def test_malformed_feature_glob_never_matches(caplog):
    with caplog.at_level(logging.WARNING, logger="cimatrix.patterns"):
        assert should_skip("a[b", ["a[b*"]) is False
        assert matches("ab", "a[b*") is False
    assert "ignoring feature pattern" in caplog.text


def test_malformed_glob_raises_when_parsed_directly():
    with pytest.raises(InvalidPatternError) as exc_info:
        FeaturePattern.parse("foo-[a*")
    assert exc_info.value.kind == "invalid_pattern"
    assert exc_info.value.pattern == "foo-[a*"


def test_character_class_is_valid():
    assert matches("db1", "db[0-9]*")
    assert not matches("dbx", "db[0-9]*")


def test_path_patterns_double_star():
    compiled = compile_path_patterns(["**/*.md"])
    assert is_ignored("README.md", compiled)
    assert is_ignored("packages/a/docs/guide.md", compiled)
    assert not is_ignored("packages/a/src/lib.rs", compiled)


def test_path_patterns_negation_last_wins():
    compiled = compile_path_patterns(["**/*.md", "!packages/a/CHANGELOG.md"])
    assert not is_ignored("packages/a/CHANGELOG.md", compiled)
    assert is_ignored("packages/b/CHANGELOG.md", compiled)


def test_path_patterns_directory_prefix():
    compiled = compile_path_patterns(["docs/"])
    assert is_ignored("docs/index.md", compiled)
    assert not is_ignored("packages/docs.rs", compiled)


@pytest.mark.parametrize("pattern", ["packages/[ab", "!", ""])
def test_invalid_path_pattern_is_hard_error(pattern):
    with pytest.raises(InvalidPatternError):
        compile_path_patterns([pattern])


def test_path_patterns_compile_without_deprecation_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        compiled = compile_path_patterns(["**/*.md", "!docs/keep.md", "target/"])
        assert is_ignored("docs/guide.md", compiled)
        assert not is_ignored("docs/keep.md", compiled)
