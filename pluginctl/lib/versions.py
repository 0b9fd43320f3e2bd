"""
Version ordering for plugin releases.

Plugin versions are SemVer 2.0.0 strings, usually with a leading "v"
(v1.2.0, v0.28.0-rc.1, v1.0.0-alpha.beta). Precedence follows SemVer:
pre-release identifiers compare numerically or lexically per dot-separated
part, and build metadata is ignored. A string that is not a valid semantic
version raises InvalidVersion so the caller decides how to report it.
"""

from functools import cmp_to_key
from typing import Iterable

import semver

__all__ = [
    "InvalidVersion",
    "compare_versions",
    "latest_version",
    "parse_version",
    "sort_versions",
]


class InvalidVersion(ValueError):
    """A version string that is not a valid semantic version."""


def parse_version(version: str) -> semver.Version:
    """Parse a plugin version string, tolerating a leading 'v'."""
    if not isinstance(version, str) or not version.strip():
        raise InvalidVersion(f"Invalid version: {version!r}")
    try:
        return semver.Version.parse(version.strip().removeprefix("v"))
    except ValueError as e:
        raise InvalidVersion(f"Invalid version: {version!r}") from e


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as version a sorts before, equal to, or after b."""
    return parse_version(a).compare(parse_version(b))


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Sort versions ascending, dropping exact duplicates.

    Every entry is parsed before anything is returned, so a single malformed
    version fails the whole call instead of being silently skipped.
    """
    unique = list(dict.fromkeys(versions))
    for v in unique:
        parse_version(v)
    # Ties (v1.0.0 vs 1.0.0, or differing build metadata) keep first-seen order
    return sorted(unique, key=cmp_to_key(compare_versions))


def latest_version(versions: Iterable[str]) -> str:
    """Return the highest version. Raises ValueError on an empty input."""
    ordered = sort_versions(versions)
    if not ordered:
        raise ValueError("no versions to choose from")
    return ordered[-1]
