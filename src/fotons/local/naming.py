"""Utilities for mapping page titles to file names."""

from __future__ import annotations

import re
import unicodedata


_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str, *, fallback: str = "foton") -> str:
    """Return a filesystem-safe slug derived from ``value``.

    Accents are folded first so "Fótons de Março" becomes "fotons-de-marco".
    """

    folded = unicodedata.normalize("NFKD", value)
    folded = "".join(char for char in folded if not unicodedata.combining(char))
    slug = _NON_WORD_RE.sub("-", folded.lower()).strip("-")
    return slug[:120] or fallback


def page_filename(title: str, page_id: int | None = None) -> str:
    slug = slugify(title)
    if page_id is not None:
        return f"{page_id}-{slug}.md"
    return f"{slug}.md"
