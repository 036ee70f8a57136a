"""
Host pattern matching for Host lines.

Patterns are globs:
- * matches any sequence of characters
- ? matches exactly one character
- [seq] matches any character in seq, [!seq] or [^seq] any character not
  in seq; a-z style ranges are allowed
- {a,b} matches either alternative
- \\x matches x literally

Matching is case-sensitive. A malformed pattern (unclosed [ or {, nested
or unopened braces, a reversed range, a trailing backslash) never matches.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable

log = logging.getLogger("ssh_profile.patterns")


class _GlobSyntaxError(ValueError):
    """Raised while translating a malformed glob."""


def _translate_class(pattern: str, i: int) -> tuple[str, int]:
    """
    Translate a character class starting just after its [.

    Returns:
        Tuple of (regex class, index after the closing ])
    """
    n = len(pattern)
    negated = False
    if i < n and pattern[i] in "!^":
        negated = True
        i += 1

    members = []
    first = True
    while True:
        if i >= n:
            raise _GlobSyntaxError("unclosed character class")
        c = pattern[i]
        i += 1
        # A ] right after the opening bracket is a literal member
        if c == "]" and not first:
            break
        first = False
        if i + 1 < n and pattern[i] == "-" and pattern[i + 1] != "]":
            end = pattern[i + 1]
            i += 2
            if end < c:
                raise _GlobSyntaxError(f"invalid range {c}-{end}")
            members.append(f"{re.escape(c)}-{re.escape(end)}")
        else:
            members.append(re.escape(c))

    return "[" + ("^" if negated else "") + "".join(members) + "]", i


def _translate(pattern: str) -> str:
    """Translate a glob into an anchored regular expression."""
    parts: list[str] = []
    alternates: list[list[str]] | None = None
    i, n = 0, len(pattern)

    while i < n:
        c = pattern[i]
        i += 1
        target = parts if alternates is None else alternates[-1]

        if c == "\\":
            if i >= n:
                raise _GlobSyntaxError("dangling escape")
            target.append(re.escape(pattern[i]))
            i += 1
        elif c == "*":
            target.append(".*")
        elif c == "?":
            target.append(".")
        elif c == "[":
            piece, i = _translate_class(pattern, i)
            target.append(piece)
        elif c == "{":
            if alternates is not None:
                raise _GlobSyntaxError("nested alternates")
            alternates = [[]]
        elif c == "}":
            if alternates is None:
                raise _GlobSyntaxError("unopened alternates")
            parts.append("(?:" + "|".join("".join(a) for a in alternates) + ")")
            alternates = None
        elif c == "," and alternates is not None:
            alternates.append([])
        else:
            target.append(re.escape(c))

    if alternates is not None:
        raise _GlobSyntaxError("unclosed alternates")
    return "(?s:" + "".join(parts) + r")\Z"


def matches(candidate: str, pattern: str) -> bool:
    """
    Check whether a host alias matches a single glob pattern.

    The pattern is compiled on every call; compile failures return False.
    """
    try:
        regex = re.compile(_translate(pattern))
    except (_GlobSyntaxError, re.error) as e:
        log.debug("Ignoring malformed host pattern %r: %s", pattern, e)
        return False
    return regex.match(candidate) is not None


def matches_any(candidate: str, patterns: Iterable[str]) -> bool:
    """Check whether a host alias matches any of the given patterns."""
    return any(matches(candidate, pattern) for pattern in patterns)
