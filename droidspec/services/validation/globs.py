"""
Packaging glob matching.

Packaging exclusions use Ant-style patterns: ``*`` matches within one path
segment, ``**`` across segments, ``?`` a single character and ``{a,b}``
alternatives. A leading ``/`` anchors the pattern at the archive root, which
is where every pattern is matched anyway.
"""

from __future__ import annotations

import re
from functools import lru_cache


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives into separate patterns.

    Args:
        pattern: Glob pattern, possibly with nested alternatives.

    Returns:
        All expanded patterns, in order. An unbalanced brace is kept literally.
    """
    start = pattern.find("{")
    if start == -1:
        return [pattern]

    depth = 0
    options: list[str] = []
    option_start = start + 1
    for index in range(start, len(pattern)):
        char = pattern[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[option_start:index])
                prefix, suffix = pattern[:start], pattern[index + 1:]
                expanded = []
                for option in options:
                    expanded.extend(expand_braces(prefix + option + suffix))
                return expanded
        elif char == "," and depth == 1:
            options.append(pattern[option_start:index])
            option_start = index + 1

    return [pattern]


def _translate(pattern: str) -> str:
    parts: list[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if pattern.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("**", index):
            parts.append(".*")
            index += 2
        elif char == "*":
            parts.append("[^/]*")
            index += 1
        elif char == "?":
            parts.append("[^/]")
            index += 1
        else:
            parts.append(re.escape(char))
            index += 1
    return "".join(parts)


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a packaging glob into an anchored regular expression."""
    alternatives = [_translate(p.lstrip("/")) for p in expand_braces(pattern)]
    return re.compile("^(?:" + "|".join(alternatives) + ")$")


def glob_matches(pattern: str, path: str) -> bool:
    """Check whether a packaging glob matches an archive path.

    Example:
        >>> glob_matches("/META-INF/{AL2.0,LGPL2.1}", "META-INF/AL2.0")
        True
    """
    return compile_glob(pattern).match(path.lstrip("/")) is not None
