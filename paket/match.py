"""Glob matching for dependency names and workspace paths."""

import re
from collections.abc import Iterable

from .errors import InvalidArguments

_RANGE = re.compile(r"\A(-?\d+)\.\.(-?\d+)\Z")


def _brace_group(pattern: str, start: int) -> tuple[int, list[str]] | None:
    """Split the brace group opening at ``start`` on its top-level commas."""
    depth = 0
    pieces = []
    last = start + 1
    for i in range(start, len(pattern)):
        c = pattern[i]
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                pieces.append(pattern[last:i])
                return i, pieces
        elif c == "," and depth == 1:
            pieces.append(pattern[last:i])
            last = i + 1
    return None


def _numeric_range(body: str) -> list[str] | None:
    match = _RANGE.match(body)
    if match is None:
        return None
    first, last = int(match.group(1)), int(match.group(2))
    step = 1 if last >= first else -1
    return [str(n) for n in range(first, last + step, step)]


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives and ``{1..3}`` ranges.

    Groups nest, so ``@{babel,types}/{core,node}`` gives four patterns. A
    brace pair with neither a comma nor a range stays literal.
    """
    for start, c in enumerate(pattern):
        if c != "{":
            continue
        group = _brace_group(pattern, start)
        if group is None:
            continue
        end, pieces = group
        if len(pieces) == 1:
            pieces = _numeric_range(pieces[0])
            if pieces is None:
                continue
        head, tail = pattern[:start], pattern[end + 1 :]
        return [expanded for piece in pieces for expanded in expand_braces(head + piece + tail)]
    return [pattern]


def split_negation(pattern: str) -> tuple[bool, str]:
    """Strip leading ``!`` marks; an odd count negates the pattern."""
    negate = False
    while pattern.startswith("!"):
        negate = not negate
        pattern = pattern[1:]
    return negate, pattern


def translate(pattern: str) -> str:
    """Translate a shell glob into a regular expression.

    ``*`` and ``?`` stay within one ``/`` separated segment, ``**`` spans
    segments and ``**/`` may also match nothing, so ``**/node_modules/**``
    matches ``node_modules/x`` as well as ``a/node_modules/x``.
    """
    i, n = 0, len(pattern)
    parts = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                parts.append("\\[")
            else:
                body = pattern[i + 1 : j].replace("\\", "\\\\")
                if body[0] in "!^":
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = j
        else:
            parts.append(re.escape(c))
        i += 1
    return "".join(parts)


def compile_glob(pattern: str) -> re.Pattern[str]:
    alternatives = "|".join(translate(p) for p in expand_braces(pattern))
    return re.compile(rf"\A(?:{alternatives})\Z")


class PatternMatcher:
    """Tests package names against a set of globs compiled once.

    A glob starting with ``!`` matches every name the rest of it does not.
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns = list(patterns)
        if not self.patterns:
            raise InvalidArguments("No globs provided")
        self._compiled = []
        for pattern in self.patterns:
            negate, body = split_negation(pattern)
            self._compiled.append((negate, compile_glob(body)))

    def matches(self, name: str) -> bool:
        return any((regex.match(name) is not None) != negate for negate, regex in self._compiled)

    def filter(self, names: Iterable[str]) -> list[str]:
        """Return the names matching any glob, in their original order."""
        return [name for name in names if self.matches(name)]

    def __repr__(self) -> str:
        return f"PatternMatcher({self.patterns!r})"
