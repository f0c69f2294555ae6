from __future__ import annotations

import functools
import re
from typing import Iterable, List, Optional, Pattern, Tuple, Union

from .errors import BadPatternError, ConfigError


def compile_regex(expr: str) -> Pattern[str]:
    """Compile an exclusion regex, turning failures into a ConfigError."""
    try:
        return re.compile(expr)
    except re.error as exc:
        raise ConfigError(f"error compiling exclude regex {expr!r}: {exc}") from exc


def glob_match(pattern: str, name: str) -> bool:
    """Report whether name matches the shell glob pattern.

    '*' matches any run of non-'/' characters, '?' a single non-'/'
    character, '[...]' a character class ('^' or '!' negates, 'a-z' ranges)
    and '\\' escapes the next character. The whole name must match.

    Raises:
        BadPatternError: If the pattern is malformed.
    """
    return _compile_glob(pattern).fullmatch(name) is not None


@functools.lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> Pattern[str]:
    return re.compile(_translate(pattern), re.DOTALL)


def _translate(pattern: str) -> str:
    out: List[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            while i < n and pattern[i] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "\\":
            if i >= n:
                raise BadPatternError(pattern, "trailing backslash")
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            cls, i = _translate_class(pattern, i)
            out.append(cls)
        else:
            out.append(re.escape(c))
    return "".join(out)


def _translate_class(pattern: str, i: int) -> Tuple[str, int]:
    """Translate the class starting just after '[' at index i."""
    n = len(pattern)
    negate = i < n and pattern[i] in "^!"
    if negate:
        i += 1
    ranges: List[Tuple[str, str]] = []
    nitems = 0
    while True:
        if i >= n:
            raise BadPatternError(pattern, "unterminated character class")
        if pattern[i] == "]" and nitems > 0:
            i += 1
            break
        lo, i = _class_char(pattern, i)
        hi = lo
        if i < n and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
        nitems += 1
        # An inverted range never matches anything
        if lo <= hi:
            ranges.append((lo, hi))
    body = "".join(re.escape(lo) if lo == hi else f"{re.escape(lo)}-{re.escape(hi)}" for lo, hi in ranges)
    if negate:
        return f"[^/{body}]", i
    if not body:
        return "(?!)", i
    return f"[{body}]", i


def _class_char(pattern: str, i: int) -> Tuple[str, int]:
    if i >= len(pattern):
        raise BadPatternError(pattern, "unterminated character class")
    c = pattern[i]
    if c in "-]":
        raise BadPatternError(pattern, f"unexpected {c!r} in character class")
    if c == "\\":
        i += 1
        if i >= len(pattern):
            raise BadPatternError(pattern, "trailing backslash")
        c = pattern[i]
    return c, i + 1


class Matcher:
    """Decides whether a path is excluded by the configured globs and regexes.

    Globs are tried first, in order, then regexes; the first hit wins.
    Regexes may be given as strings (compiled here, errors become
    ConfigError) or as compiled patterns.
    """

    def __init__(
        self,
        globs: Optional[Iterable[str]] = None,
        regexes: Optional[Iterable[Union[str, Pattern[str]]]] = None,
    ):
        self.globs: List[str] = list(globs or [])
        self.regexes: List[Pattern[str]] = [
            compile_regex(r) if isinstance(r, str) else r for r in (regexes or [])
        ]

    def is_excluded(self, path: str) -> bool:
        """Return True if any glob or regex matches path.

        Raises:
            BadPatternError: If a glob consulted for path is malformed.
        """
        for g in self.globs:
            if glob_match(g, path):
                return True
        for rx in self.regexes:
            if rx.search(path):
                return True
        return False
