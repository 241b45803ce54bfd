"""Translation between dialect text and content blocks.

The dialect is line oriented: every block is exactly one line, so both
directions work line by line and never fail. Inline ``**bold**`` and
``*italic*`` spans stay inside a block's text and are only interpreted by
``render_inline`` when the text is shown.
"""

from __future__ import annotations

import re
from typing import Mapping

from markdown_it import MarkdownIt

from .blocks import (
    HEADING_LEVELS,
    LIST_PREFIX,
    RULE_MARKER,
    UNTITLED_LINK,
    Blank,
    ContentBlock,
    Heading,
    HorizontalRule,
    ListItem,
    PageLink,
    Paragraph,
)


PAGE_LINK_RE = re.compile(r"^>\s*\[\[page:(\d+):(.+?)\]\]")
PAGE_LINK_TOKEN_RE = re.compile(r">\s*\[\[page:(\d+):(.+?)\]\]")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_HEADING_PREFIXES = tuple(("#" * level + " ", level) for level in reversed(HEADING_LEVELS))
_LIST_PREFIXES = ("- ", "* ")

_inline = MarkdownIt("zero").enable("emphasis")


def page_link_token(target_id: int, title: str) -> str:
    return f"> [[page:{target_id}:{_single_line(title) or UNTITLED_LINK}]]"


def parse_line(line: str) -> ContentBlock:
    """Classify one line; the first matching rule wins."""

    match = PAGE_LINK_RE.match(line)
    if match:
        return PageLink(target_id=int(match.group(1)), title_snapshot=match.group(2))
    if line.strip() == RULE_MARKER:
        return HorizontalRule()
    for prefix, level in _HEADING_PREFIXES:
        if line.startswith(prefix):
            return Heading(level=level, text=line[len(prefix):])
    for prefix in _LIST_PREFIXES:
        if line.startswith(prefix):
            return ListItem(text=line[len(prefix):])
    if not line.strip():
        return Blank()
    return Paragraph(text=line)


def parse(text: str | None) -> list[ContentBlock]:
    if not text:
        return []
    return [parse_line(line) for line in _LINE_BREAK_RE.split(text)]


def serialize_block(block: ContentBlock) -> str:
    if isinstance(block, PageLink):
        return page_link_token(block.target_id, block.title_snapshot)
    if isinstance(block, HorizontalRule):
        return RULE_MARKER
    if isinstance(block, Heading):
        return block.prefix + _single_line(block.text)
    if isinstance(block, ListItem):
        return LIST_PREFIX + _single_line(block.text)
    if isinstance(block, Paragraph):
        return _single_line(block.text)
    return ""


def serialize(blocks: list[ContentBlock]) -> str:
    lines = [serialize_block(block) for block in blocks]
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def replace_link_titles(text: str, titles: Mapping[int, str]) -> str:
    """Rewrite page-link tokens in ``text`` with the titles known for their ids."""

    def _swap(match: re.Match) -> str:
        target_id = int(match.group(1))
        if target_id not in titles:
            return match.group(0)
        return page_link_token(target_id, titles[target_id])

    return PAGE_LINK_TOKEN_RE.sub(_swap, text)


def render_inline(text: str) -> str:
    """Render the emphasis spans of a block's text as HTML."""

    return _inline.renderInline(text)


def _single_line(text: str) -> str:
    return _LINE_BREAK_RE.sub(" ", text)
