# tripwire_kernel/matcher.py
"""
Resource classification against the disallowed-pattern policy.

A pattern hits when EITHER:
- it matches the whole path as a shell glob (fnmatch, case-sensitive,
  `*` spans `/`, `[^...]` and `[!...]` both negate a class), OR
- the path contains it as a literal substring.

The substring rule is the coarse fallback: a bare word such as "secret"
catches the path wherever it appears.
"""
from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Iterable, Optional


_CARET_CLASS = re.compile(r"\[\^")


def glob_form(pattern: str) -> str:
    """Accept `[^...]` as a negated class alongside fnmatch's `[!...]`."""
    return _CARET_CLASS.sub("[!", pattern)


def match_pattern(resource_path: str, pattern: str) -> bool:
    return fnmatchcase(resource_path, glob_form(pattern)) or pattern in resource_path


def first_match(resource_path: str, patterns: Iterable[str]) -> Optional[str]:
    """Return the first pattern that hits, or None."""
    for pattern in patterns:
        if match_pattern(resource_path, pattern):
            return pattern
    return None


def matches(resource_path: str, patterns: Iterable[str]) -> bool:
    return first_match(resource_path, patterns) is not None
