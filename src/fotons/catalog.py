"""Browsing helpers for the page catalogue: tabs, search, ordering, labels."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from fotons.api.models import PageRecord


COLLECTION_TAG = "collection"
CALLOUT_TAG = "callout"
NO_DATE_LABEL = "Sem data"


class CatalogTab(str, Enum):
    COLLECTIONS = "collections"
    LIBRARY = "library"
    IMAGES = "images"


TAB_LABELS = {
    CatalogTab.COLLECTIONS: "Coleções",
    CatalogTab.LIBRARY: "Biblioteca",
    CatalogTab.IMAGES: "Imagens",
}


def in_tab(page: PageRecord, tab: CatalogTab) -> bool:
    if tab is CatalogTab.COLLECTIONS:
        return page.has_tag(COLLECTION_TAG)
    if tab is CatalogTab.IMAGES:
        return bool(page.image)
    return True


def matches_search(page: PageRecord, query: str) -> bool:
    query = query.strip().lower()
    if not query:
        return True
    haystack = f"{page.title} {page.ai_desc or ''} {page.content or ''}".lower()
    return query in haystack


def date_key(page: PageRecord) -> tuple[int, int, int, int, int]:
    return (page.year or 0, page.month or 0, page.day or 0, page.hour or 0, page.minute or 0)


def filter_pages(
    pages: Iterable[PageRecord],
    *,
    tab: CatalogTab = CatalogTab.LIBRARY,
    search: str = "",
) -> list[PageRecord]:
    """Pages of ``tab`` matching ``search``, newest custom date first.

    In the collections tab, pages tagged ``callout`` come first.
    """

    selected = [page for page in pages if in_tab(page, tab) and matches_search(page, search)]
    selected.sort(key=date_key, reverse=True)
    if tab is CatalogTab.COLLECTIONS:
        selected.sort(key=lambda page: not page.has_tag(CALLOUT_TAG))
    return selected


def featured_page(pages: list[PageRecord], tab: CatalogTab) -> Optional[PageRecord]:
    if not pages:
        return None
    if tab is CatalogTab.COLLECTIONS:
        for page in pages:
            if page.has_tag(CALLOUT_TAG):
                return page
    return pages[0]


def date_label(page: PageRecord) -> str:
    parts: list[str] = []

    date_parts = [f"{value:02d}" for value in (page.day, page.month) if value is not None]
    if page.year is not None:
        date_parts.append(str(page.year))
    if date_parts:
        parts.append("/".join(date_parts))

    time_parts = [f"{value:02d}" for value in (page.hour, page.minute) if value is not None]
    if time_parts:
        parts.append(":".join(time_parts))

    if parts:
        return " ".join(parts)

    for fallback in (page.created_date, page.created_at):
        formatted = _format_iso_date(fallback)
        if formatted:
            return formatted
    return NO_DATE_LABEL


def _format_iso_date(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return moment.strftime("%d/%m/%Y")
