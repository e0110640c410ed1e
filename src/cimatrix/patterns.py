# patterns.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from fnmatch import translate
from typing import Iterable, List, Optional, Sequence

import pathspec

from .errors import InvalidPatternError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# A pattern list is evaluated left to right. Each entry is either a plain
# pattern ("skip/include this") or a negation ("!pattern", "keep/drop this").
# The LAST entry that matches an item decides the verdict; earlier matches
# are overridden. Same algebra for:
#   - skip-features      (should_skip)
#   - feature selection  (expand)
#   - package selection  (expand over member names)
#   - changed-file ignore lists (is_ignored, gitignore-style paths)
# ---------------------------------------------------------------------


def _is_glob(text: str) -> bool:
    return "*" in text or "?" in text


def _check_brackets(text: str) -> None:
    open_at = None
    i = 0
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if open_at is None and c == "[":
            open_at = i
            # "[]" and "[!]" take the first ']' literally
            j = i + 1
            if j < len(text) and text[j] in "!^":
                j += 1
            if j < len(text) and text[j] == "]":
                j += 1
            i = j
            continue
        if open_at is not None and c == "]":
            open_at = None
        i += 1
    if open_at is not None:
        raise InvalidPatternError(text, f"unclosed character class at offset {open_at}")


@dataclass(frozen=True)
class FeaturePattern:
    """
    One parsed entry of a feature pattern list.

    `glob` is true when the body contains `*` or `?`; otherwise the pattern
    only matches the identical string.
    """
    raw: str
    negated: bool
    glob: bool
    regex: Optional[re.Pattern] = None

    @property
    def body(self) -> str:
        return self.raw[1:] if self.negated else self.raw

    @classmethod
    def parse(cls, raw: str) -> FeaturePattern:
        negated = raw.startswith("!")
        body = raw[1:] if negated else raw
        glob = _is_glob(body)
        regex = None
        if glob:
            _check_brackets(body)
            regex = re.compile(translate(body))
        return cls(raw=raw, negated=negated, glob=glob, regex=regex)

    def hits(self, item: str) -> bool:
        if self.glob:
            return self.regex is not None and self.regex.match(item) is not None
        return item == self.body


def _parse_soft(patterns: Iterable[str]) -> List[FeaturePattern]:
    parsed: List[FeaturePattern] = []
    for raw in patterns:
        try:
            parsed.append(FeaturePattern.parse(raw))
        except InvalidPatternError as e:
            # a broken feature glob never matches; CI generation keeps going
            logger.warning("ignoring feature pattern %r: %s", raw, e.details.get("reason"))
    return parsed


def matches(item: str, pattern: str) -> bool:
    """Glob match if `pattern` contains `*`/`?`, else exact string equality."""
    parsed = _parse_soft([pattern])
    return bool(parsed) and parsed[0].hits(item)


def _verdict(item: str, patterns: Sequence) -> Optional[bool]:
    """
    Walk the list once; return the polarity of the last matching entry
    (True for a plain match, False for a negation) or None if nothing matched.
    """
    verdict: Optional[bool] = None
    for p in patterns:
        if p.hits(item):
            verdict = not p.negated
    return verdict


def should_skip(item: str, patterns: Iterable[str]) -> bool:
    return bool(_verdict(item, _parse_soft(patterns)))


def expand(patterns: Iterable[str], available: Iterable[str]) -> List[str]:
    """
    Build an inclusion list from `patterns`.

    - exact names are included verbatim, even if not in `available`
    - wildcards expand against `available`
    - negations remove whatever earlier entries added
    The result keeps first-inclusion order.
    """
    available = list(available)
    out: List[str] = []
    for p in _parse_soft(patterns):
        if p.negated:
            out = [x for x in out if not p.hits(x)]
            continue
        if p.glob:
            candidates = [x for x in available if p.hits(x)]
        else:
            candidates = [p.body]
        for c in candidates:
            if c not in out:
                out.append(c)
    return out


# ---------------------------------------------------------------------
# Path patterns (changed-file ignore lists)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PathPattern:
    raw: str
    negated: bool
    spec: pathspec.GitIgnoreSpec

    def hits(self, path: str) -> bool:
        return self.spec.match_file(path)


def compile_path_patterns(patterns: Iterable[str]) -> List[PathPattern]:
    """
    Compile gitignore-style path globs (`**/` spans directories).

    Unlike feature patterns, a malformed entry raises InvalidPatternError.
    """
    compiled: List[PathPattern] = []
    for raw in patterns:
        negated = raw.startswith("!")
        body = raw[1:] if negated else raw
        if not body:
            raise InvalidPatternError(raw, "empty pattern")
        _check_brackets(body)
        try:
            spec = pathspec.GitIgnoreSpec.from_lines([body])
        except ValueError as e:
            raise InvalidPatternError(raw, str(e)) from e
        compiled.append(PathPattern(raw=raw, negated=negated, spec=spec))
    return compiled


def is_ignored(path: str, patterns: Sequence[PathPattern]) -> bool:
    return bool(_verdict(path, patterns))
