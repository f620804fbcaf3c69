"""Filename matching with restricted shell patterns.

fnmatch(NAME, PATTERN) matches according to the listing convention,
a leading wildcard never matches a hidden name.
fnmatchcase(NAME, PATTERN) matches the bare wildcards.

Patterns know three kinds of token:

*       matches any run of characters, including the empty one
?       matches exactly one character
other   matches itself

There is no way to quote meta-characters, and '/' is not special.
"""

from typing import Iterable, List

MAGIC_CHARS = "*?"


def has_magic(pattern: str) -> bool:
    """Test whether a pattern contains wildcards"""
    return any(char in pattern for char in MAGIC_CHARS)


def fnmatch(name: str, pat: str) -> bool:
    """Test whether NAME matches PATTERN.

    A pattern starting with '*' or '?' never matches a name starting
    with '.', literal patterns like '.bashrc' or '.*' still do.
    """
    if pat[:1] in ("*", "?") and name.startswith("."):
        return False
    return fnmatchcase(name, pat)


def fnmatchcase(name: str, pat: str) -> bool:
    """Test whether NAME matches PATTERN, including case.

    Runs in a loop instead of recursing on every '*': when a later token
    fails, the most recent '*' is made to swallow one more character and
    matching resumes after it. Earlier stars never need revisiting, since
    the most recent star can absorb anything they would.
    """
    i, j, n, m = 0, 0, len(name), len(pat)
    star_pat, star_name = -1, 0
    while i < n:
        if j < m and pat[j] == "*":
            # shortest expansion first
            star_pat, star_name = j, i
            j += 1
        elif j < m and (pat[j] == "?" or pat[j] == name[i]):
            i += 1
            j += 1
        elif star_pat >= 0:
            star_name += 1
            i, j = star_name, star_pat + 1
        else:
            return False
    while j < m and pat[j] == "*":
        j += 1
    return j == m


def filter(names: Iterable[str], pat: str) -> List[str]:
    """Return the subset of NAMES that match PAT, keeping their order."""
    return [name for name in names if fnmatch(name, pat)]
