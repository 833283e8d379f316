from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """URL slug: accents stripped, lower-case, words joined by single hyphens.

    >>> slugify("  Côte d'Ivoire ")
    'cote-d-ivoire'
    """
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return "-".join(_NON_ALNUM.sub(" ", ascii_only.lower()).split())


def next_free_slug(base: str, taken: list[str]) -> str:
    """First of ``base``, ``base-2``, ``base-3``, ... that is not taken.

    Only ``taken`` entries of the form ``base`` or ``base-<n>`` matter.
    """
    pattern = re.compile(rf"^{re.escape(base)}(?:-(\d+))?$")
    suffixes = []
    for slug in taken:
        match = pattern.match(slug)
        if match:
            suffixes.append(int(match.group(1)) if match.group(1) else 1)
    if not suffixes:
        return base
    return f"{base}-{max(max(suffixes) + 1, 2)}"
