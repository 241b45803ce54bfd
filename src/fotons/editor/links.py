"""Refresh page-link titles from the pages they point to."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Iterable

from fotons.api.models import PageRecord

from .blocks import ContentBlock, PageLink
from .codec import PAGE_LINK_TOKEN_RE, replace_link_titles

logger = logging.getLogger(__name__)


PageFetcher = Callable[[int], Awaitable[PageRecord]]


async def fetch_link_titles(target_ids: Iterable[int], fetch_page: PageFetcher) -> dict[int, str]:
    """Return the current title of every target that could be fetched.

    Targets that fail are logged and left out; the caller keeps their
    embedded snapshot.
    """

    unique = list(dict.fromkeys(target_ids))
    results = await asyncio.gather(*(fetch_page(target_id) for target_id in unique), return_exceptions=True)

    titles: dict[int, str] = {}
    for target_id, result in zip(unique, results):
        if isinstance(result, Exception):
            logger.error(f"Failed to fetch page {target_id}: {result}")
            continue
        if isinstance(result, BaseException):
            raise result
        titles[target_id] = result.title
    return titles


async def resolve_page_links(blocks: list[ContentBlock], fetch_page: PageFetcher) -> list[ContentBlock]:
    target_ids = [block.target_id for block in blocks if isinstance(block, PageLink)]
    if not target_ids:
        return list(blocks)

    titles = await fetch_link_titles(target_ids, fetch_page)
    return [
        replace(block, title_snapshot=titles[block.target_id])
        if isinstance(block, PageLink) and block.target_id in titles
        else block
        for block in blocks
    ]


async def resolve_content_links(content: str, fetch_page: PageFetcher) -> str:
    """Same as ``resolve_page_links`` but on raw dialect text."""

    target_ids = [int(match.group(1)) for match in PAGE_LINK_TOKEN_RE.finditer(content or "")]
    if not target_ids:
        return content
    titles = await fetch_link_titles(target_ids, fetch_page)
    return replace_link_titles(content, titles)
