"""Content blocks: the typed model behind a page's dialect text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union


HEADING_LEVELS = (1, 2, 3)
LIST_PREFIX = "- "
RULE_MARKER = "---"
UNTITLED_LINK = "Sem título"


@dataclass(frozen=True, slots=True)
class Paragraph:
    text: str

    kind: ClassVar[str] = "paragraph"


@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: str

    kind: ClassVar[str] = "heading"

    def __post_init__(self) -> None:
        if self.level not in HEADING_LEVELS:
            raise ValueError(f"Heading level must be 1, 2 or 3, got {self.level!r}")

    @property
    def prefix(self) -> str:
        return "#" * self.level + " "


@dataclass(frozen=True, slots=True)
class ListItem:
    text: str

    kind: ClassVar[str] = "list_item"
    prefix: ClassVar[str] = LIST_PREFIX


@dataclass(frozen=True, slots=True)
class HorizontalRule:
    kind: ClassVar[str] = "horizontal_rule"


@dataclass(frozen=True, slots=True)
class PageLink:
    """Reference to another page; ``title_snapshot`` is only a display cache."""

    target_id: int
    title_snapshot: str

    kind: ClassVar[str] = "page_link"

    def __post_init__(self) -> None:
        # the token grammar needs a non-empty title
        if not self.title_snapshot:
            object.__setattr__(self, "title_snapshot", UNTITLED_LINK)


@dataclass(frozen=True, slots=True)
class Blank:
    kind: ClassVar[str] = "blank"


ContentBlock = Union[Paragraph, Heading, ListItem, HorizontalRule, PageLink, Blank]
TextBlock = Union[Paragraph, Heading, ListItem]


def same_structure(left: list[ContentBlock], right: list[ContentBlock]) -> bool:
    """Compare block lists while ignoring page-link title snapshots."""

    if len(left) != len(right):
        return False
    for a, b in zip(left, right):
        if isinstance(a, PageLink) and isinstance(b, PageLink):
            if a.target_id != b.target_id:
                return False
        elif a != b:
            return False
    return True
