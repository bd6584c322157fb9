"""Exclude patterns for site uploads.

This module provides:
- ExcludePatterns: Glob matching of POSIX relative paths
- parse_exclude_patterns: Split a comma-separated pattern list

Pattern syntax:
- ``*`` matches any run of characters except ``/``
- ``?`` matches exactly one character except ``/``
- ``**`` matches any number of directories, including none
- ``[abc]`` / ``[!abc]`` match one character from (or not from) a set
- A pattern without ``/`` is also tried against the file's basename
"""

from __future__ import annotations

import re
from collections.abc import Iterable


def parse_exclude_patterns(value: str | None) -> list[str]:
    """Split "a, b,,c" into ["a", "b", "c"]."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _translate(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    i = 0
    n = len(pattern)
    out: list[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                i += 2
                if at_start and i < n and pattern[i] == "/":
                    # "**/" also matches zero directories
                    out.append("(?:.*/)?")
                    i += 1
                elif at_start and i == n and out and out[-1] == "/":
                    # trailing "/**" matches the directory itself and everything below
                    out[-1] = "(?:/.*)?"
                else:
                    out.append(".*")
            else:
                out.append("[^/]*")
                i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1 : end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end + 1
        elif c == "/":
            out.append("/")
            i += 1
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out) + r"\Z")


class ExcludePatterns:
    """Decides whether a relative path is excluded from an upload.

    Instances are callable, so they can be passed wherever a
    ``Callable[[str], bool]`` predicate is expected.

    Usage:
        exclude = ExcludePatterns(["*.log", "drafts/**", "**/node_modules/**"])
        exclude("css/site.css")        # False
        exclude("drafts/post.html")    # True
    """

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Glob patterns matched against POSIX relative paths.
        """
        self._patterns: list[str] = []
        self._compiled: list[tuple[re.Pattern[str], bool]] = []
        for pattern in patterns or ():
            self.add_pattern(pattern)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an exclude pattern."""
        pattern = pattern.strip().lstrip("/")
        if not pattern:
            return
        self._patterns.append(pattern)
        self._compiled.append((_translate(pattern), "/" not in pattern))

    def matches(self, relative_path: str) -> bool:
        """Check if a path should be excluded.

        Args:
            relative_path: Path relative to the site root, "/" separated.

        Returns:
            True if any pattern matches.
        """
        path = relative_path.replace("\\", "/").lstrip("/")
        basename = path.rsplit("/", 1)[-1]
        for regex, basename_too in self._compiled:
            if regex.match(path):
                return True
            if basename_too and regex.match(basename):
                return True
        return False

    __call__ = matches

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def __repr__(self) -> str:
        return f"ExcludePatterns({self._patterns!r})"
