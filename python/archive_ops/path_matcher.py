"""
Exclusion matching for archive paths.

Patterns are glob-style ("*", "?", "[...]", "{a,b}" alternatives, and "**"
for any number of directories) and are matched against the whole archive path
of an entry, not just its base name. Matching is anchored at the archive root,
so "file2.txt" only excludes a top-level file2.txt while "**/file2.txt"
excludes it at any depth.
"""

import os
from typing import Iterable, List, Optional, Sequence, Tuple

import pathspec

from colored_logger import get_colored_logger
from .errors import MatchPatternError

logger = get_colored_logger(__name__)


def _normalize_separators(pattern: str) -> str:
    if os.sep != "/":
        pattern = pattern.replace(os.sep, "/")
    return pattern


def _class_end(pattern: str, start: int) -> int:
    """Return the index of the "]" closing the class opened at start."""
    length = len(pattern)
    j = start + 1
    if j < length and pattern[j] in "!^":
        j += 1
    # A "]" right after the opening bracket is a literal member
    if j < length and pattern[j] == "]":
        j += 1
    while j < length and pattern[j] != "]":
        if pattern[j] == "\\":
            j += 1
        j += 1
    if j >= length:
        raise MatchPatternError(pattern, "unterminated character class")
    return j


def _check_syntax(pattern: str) -> None:
    """Reject unterminated character classes, unbalanced braces and dangling escapes."""
    depth = 0
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char == "\\":
            if i + 1 >= length:
                raise MatchPatternError(pattern, "trailing escape character")
            i += 2
            continue
        if char == "[":
            i = _class_end(pattern, i) + 1
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                raise MatchPatternError(pattern, "unmatched closing brace")
            depth -= 1
        i += 1

    if depth:
        raise MatchPatternError(pattern, "unterminated brace group")


def _first_brace_group(pattern: str) -> Optional[Tuple[int, int, List[str]]]:
    """Find the first top-level {...} group: (start, end, alternatives)."""
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            i = _class_end(pattern, i) + 1
            continue
        if char != "{":
            i += 1
            continue

        depth = 0
        part_start = i + 1
        alternatives: List[str] = []
        j = i
        while j < length:
            c = pattern[j]
            if c == "\\":
                j += 2
                continue
            if c == "[":
                j = _class_end(pattern, j) + 1
                continue
            if c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    alternatives.append(pattern[part_start:j])
                    return i, j, alternatives
            elif c == "," and depth == 1:
                alternatives.append(pattern[part_start:j])
                part_start = j + 1
            j += 1
        return None
    return None


def expand_braces(pattern: str) -> List[str]:
    """
    Expand "{a,b}" alternatives into plain glob patterns.

    Groups may nest ("*.{py,{c,h}}") and escaped braces stay literal. The
    result keeps the order of the alternatives and drops repeats.
    """
    group = _first_brace_group(pattern)
    if group is None:
        return [pattern]

    start, end, alternatives = group
    head, tail = pattern[:start], pattern[end + 1 :]
    expanded: List[str] = []
    for alternative in alternatives:
        expanded.extend(expand_braces(head + alternative + tail))
    return list(dict.fromkeys(expanded))


def _escape_trailing_spaces(pattern: str) -> str:
    """Protect trailing spaces, which gitignore-style parsing would strip."""
    stripped = pattern.rstrip(" ")
    count = len(pattern) - len(stripped)
    if not count:
        return pattern

    backslashes = len(stripped) - len(stripped.rstrip("\\"))
    if backslashes % 2:
        # The first trailing space is already escaped
        return stripped + " " + "\\ " * (count - 1)
    return stripped + "\\ " * count


def _compile(raw: str, pattern: str) -> pathspec.PathSpec:
    lines = []
    for alternative in expand_braces(pattern):
        # Anchor at the archive root; a leading "/" also keeps "!" and "#"
        # literal instead of negation/comment markers.
        anchored = alternative if alternative.startswith("/") else f"/{alternative}"
        lines.append(_escape_trailing_spaces(anchored))
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", lines)
    except ValueError as e:
        raise MatchPatternError(raw, str(e)) from e


class ExclusionSet:
    """
    Ordered, immutable list of compiled exclusion patterns.

    Empty patterns are dropped and never match. Construction fails with
    MatchPatternError before any walking or writing starts.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        compiled: List[Tuple[str, pathspec.PathSpec]] = []
        for raw in patterns or ():
            if raw is None or raw == "":
                continue
            pattern = _normalize_separators(raw)
            _check_syntax(pattern)
            compiled.append((raw, _compile(raw, pattern)))
        self._compiled: Tuple[Tuple[str, pathspec.PathSpec], ...] = tuple(compiled)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(raw for raw, _ in self._compiled)

    def __len__(self) -> int:
        return len(self._compiled)

    def __bool__(self) -> bool:
        return bool(self._compiled)

    def __repr__(self) -> str:
        return f"ExclusionSet({list(self.patterns)!r})"

    def first_match(self, archive_path: str) -> Optional[str]:
        """Return the first pattern matching the path, or None."""
        candidate = _normalize_separators(archive_path)
        for raw, spec in self._compiled:
            if spec.match_file(candidate):
                return raw
        return None

    def matches(self, archive_path: str) -> bool:
        return self.first_match(archive_path) is not None


class PathMatcher:
    """Decides whether archive paths are excluded by an ExclusionSet."""

    def __init__(self, excludes: Optional[ExclusionSet] = None):
        self.excludes = excludes if excludes is not None else ExclusionSet()

    def is_excluded(self, archive_path: str) -> bool:
        pattern = self.excludes.first_match(archive_path)
        if pattern is not None:
            logger.debug("Excluded %s (pattern %r)", archive_path, pattern)
            return True
        return False


def is_excluded(candidate_path: str, patterns: Sequence[str]) -> bool:
    """
    Check a single path against a list of patterns.

    Raises:
        MatchPatternError: If any pattern is syntactically invalid
    """
    return ExclusionSet(patterns).matches(candidate_path)
