"""Wildcard matching for key and value searches."""

import functools
import re
from typing import Optional, Pattern


@functools.lru_cache(maxsize=128)
def _compile(pattern: str) -> Pattern[str]:
    body = re.escape(pattern).replace(r"\*", ".*")
    return re.compile(f"^{body}$", re.IGNORECASE | re.DOTALL)


def matches(text: str, pattern: Optional[str]) -> bool:
    """Match a name against a search pattern, ignoring case.

    An empty pattern matches everything. A pattern containing ``*`` must
    match the whole name, with each ``*`` standing for any run of
    characters. A pattern without ``*`` matches any name that contains it.

    Example:
        matches("FooBar", "Foo*")          # True
        matches("Install-Log", "Install")  # True, substring
        matches("Install-Log", "Install*Z")  # False
    """
    if not pattern:
        return True
    if "*" in pattern:
        return _compile(pattern).match(text) is not None
    return pattern.lower() in text.lower()
