"""Editable surface: the node tree a user edits, and its block translation.

The surface mirrors what the browser's content-editable view holds. Each
top-level node is one line; tagged nodes remember the markdown prefix they
were built from so ``extract`` can turn the tree back into blocks without
guessing from presentation.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from markdownify import ASTERISK, markdownify

from .blocks import (
    LIST_PREFIX,
    RULE_MARKER,
    Blank,
    ContentBlock,
    Heading,
    HorizontalRule,
    ListItem,
    PageLink,
    Paragraph,
)
from .codec import parse_line, render_inline

logger = logging.getLogger(__name__)


TEXT = "#text"
BULLET = "•"
PAGE_ID_ATTR = "data-page-id"
PAGE_TITLE_ATTR = "data-page-title"
MD_ATTR = "data-md"
LINE_TAGS = frozenset({"div", "p"})
INLINE_MARKERS = {"strong": "**", "b": "**", "em": "*", "i": "*", "span": ""}

Listener = Callable[[], None]


@dataclass(eq=False, slots=True)
class SurfaceNode:
    """One node of the editable tree (element or text)."""

    tag: str
    text: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    children: list["SurfaceNode"] = field(default_factory=list)
    editable: bool = True
    parent: Optional["SurfaceNode"] = field(default=None, repr=False)

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT

    @property
    def md_prefix(self) -> Optional[str]:
        return self.attrs.get(MD_ATTR)

    @property
    def link_target(self) -> Optional[int]:
        """Id of the page this node links to, for click-through navigation."""

        return _as_optional_int(self.attrs.get(PAGE_ID_ATTR))

    def append(self, child: "SurfaceNode") -> "SurfaceNode":
        child.parent = self
        self.children.append(child)
        return child

    def text_content(self) -> str:
        """Text of the node, leaving out non-editable decorations such as bullets."""

        if self.is_text:
            return self.text
        return "".join(child.text_content() for child in self.children if child.editable)

    def iter_text_nodes(self) -> Iterator["SurfaceNode"]:
        if self.is_text:
            yield self
            return
        for child in self.children:
            if child.editable:
                yield from child.iter_text_nodes()


@dataclass(slots=True)
class Cursor:
    node: SurfaceNode
    offset: int


# ----------------------------------------------------------------------
# Node factories
# ----------------------------------------------------------------------
def text_node(text: str) -> SurfaceNode:
    return SurfaceNode(TEXT, text=text)


def line_node(text: str = "") -> SurfaceNode:
    node = SurfaceNode("div")
    node.append(text_node(text))
    return node


def heading_node(level: int, text: str) -> SurfaceNode:
    node = SurfaceNode(f"h{level}", attrs={MD_ATTR: "#" * level + " "})
    node.append(text_node(text))
    return node


def list_item_node(text: str) -> SurfaceNode:
    node = SurfaceNode("div", attrs={MD_ATTR: LIST_PREFIX})
    bullet = node.append(SurfaceNode("span", editable=False))
    bullet.append(text_node(BULLET))
    body = node.append(SurfaceNode("span"))
    body.append(text_node(text))
    return node


def rule_node() -> SurfaceNode:
    return SurfaceNode("div", attrs={MD_ATTR: RULE_MARKER}, editable=False)


def page_link_node(target_id: int | str, title: str) -> SurfaceNode:
    node = SurfaceNode(
        "div",
        attrs={PAGE_ID_ATTR: str(target_id), PAGE_TITLE_ATTR: title},
        editable=False,
    )
    label = node.append(SurfaceNode("span"))
    label.append(text_node(title))
    return node


def break_node() -> SurfaceNode:
    return SurfaceNode("br")


def node_for_block(block: ContentBlock) -> SurfaceNode:
    if isinstance(block, PageLink):
        return page_link_node(block.target_id, block.title_snapshot)
    if isinstance(block, HorizontalRule):
        return rule_node()
    if isinstance(block, Heading):
        return heading_node(block.level, block.text)
    if isinstance(block, ListItem):
        return list_item_node(block.text)
    if isinstance(block, Paragraph):
        return line_node(block.text)
    return break_node()


def tagged_node(prefix: str, text: str) -> SurfaceNode:
    """Rebuild a node from its markdown prefix and editable text."""

    block = block_for_prefix(prefix, text)
    if isinstance(block, (Heading, ListItem, HorizontalRule)):
        return node_for_block(block)
    node = SurfaceNode("div", attrs={MD_ATTR: prefix})
    node.append(text_node(text))
    return node


def block_for_prefix(prefix: str, text: str) -> ContentBlock:
    if prefix.strip() == RULE_MARKER:
        return HorizontalRule()
    for level in (3, 2, 1):
        if prefix == "#" * level + " ":
            return Heading(level=level, text=text)
    if prefix in ("- ", "* "):
        return ListItem(text=text)
    return parse_line(prefix + text)


# ----------------------------------------------------------------------
# Surface
# ----------------------------------------------------------------------
class EditorSurface:
    """Live editable tree with a cursor, change listeners and block I/O."""

    def __init__(self) -> None:
        self.root = SurfaceNode("div")
        self.cursor: Optional[Cursor] = None
        self._change_listeners: list[Listener] = []
        self._input_listeners: list[Listener] = []

    @property
    def lines(self) -> list[SurfaceNode]:
        return self.root.children

    def on_change(self, listener: Listener) -> None:
        """Register a callback fired after every mutation of the tree."""

        self._change_listeners.append(listener)

    def on_input(self, listener: Listener) -> None:
        """Register a callback fired after text typed by the user."""

        self._input_listeners.append(listener)

    def _changed(self, *, user_input: bool = False) -> None:
        for listener in list(self._change_listeners):
            listener()
        if user_input:
            for listener in list(self._input_listeners):
                listener()

    # ------------------------------------------------------------------
    # Mount / extract
    # ------------------------------------------------------------------
    def mount(self, blocks: list[ContentBlock]) -> None:
        self.root.children = []
        for block in blocks:
            self.root.append(node_for_block(block))
        self.cursor = None

    def extract(self) -> list[ContentBlock]:
        blocks: list[ContentBlock] = []
        for node in self.root.children:
            self._walk(node, blocks)
        return blocks

    def _walk(self, node: SurfaceNode, out: list[ContentBlock]) -> None:
        if node.is_text:
            if not node.text.strip() and "\n" not in node.text:
                return
            for line in node.text.split("\n"):
                out.append(Paragraph(text=line) if line.strip() else Blank())
            return

        if PAGE_ID_ATTR in node.attrs:
            target_id = node.link_target
            if target_id is None:
                logger.warning(f"Skipping page link with invalid id {node.attrs[PAGE_ID_ATTR]!r}")
                return
            out.append(PageLink(target_id=target_id, title_snapshot=node.attrs.get(PAGE_TITLE_ATTR, "")))
            return

        prefix = node.md_prefix
        if prefix is not None:
            out.append(block_for_prefix(prefix, node.text_content()))
            return

        if node.tag == "br":
            out.append(Blank())
            return

        if node.tag in LINE_TAGS and not node.text_content().strip():
            out.append(Blank())
            return

        for child in node.children:
            self._walk(child, out)

    # ------------------------------------------------------------------
    # Cursor and typing
    # ------------------------------------------------------------------
    def place_cursor(self, node: SurfaceNode, offset: Optional[int] = None) -> Cursor:
        """Put the cursor in ``node`` (or the last editable text inside it)."""

        if not node.is_text:
            texts = list(node.iter_text_nodes()) if node.editable else []
            if not texts:
                raise ValueError(f"<{node.tag}> holds no editable text")
            node = texts[-1]
        if self.line_of(node) is None:
            raise ValueError("Node is not part of this surface")
        if offset is None:
            offset = len(node.text)
        self.cursor = Cursor(node=node, offset=max(0, min(offset, len(node.text))))
        return self.cursor

    def line_of(self, node: SurfaceNode) -> Optional[SurfaceNode]:
        current: Optional[SurfaceNode] = node
        while current is not None and current.parent is not self.root:
            if current.parent is None:
                return None
            current = current.parent
        return current

    def current_line(self) -> Optional[SurfaceNode]:
        if self.cursor is None:
            return None
        return self.line_of(self.cursor.node)

    def text_before_cursor(self) -> str:
        if self.cursor is None:
            return ""
        return self.cursor.node.text[: self.cursor.offset]

    def type_text(self, text: str) -> None:
        segments = text.split("\n")
        for index, segment in enumerate(segments):
            if index:
                self._break_line()
            if segment:
                self._insert(segment)
        self._changed(user_input=True)

    def insert_line_break(self) -> None:
        self._break_line()
        self._changed(user_input=True)

    def _ensure_cursor(self) -> Cursor:
        if self.cursor is None:
            line = self.root.append(line_node())
            self.place_cursor(line)
        assert self.cursor is not None
        return self.cursor

    def _insert(self, text: str) -> None:
        cursor = self._ensure_cursor()
        node = cursor.node
        node.text = node.text[: cursor.offset] + text + node.text[cursor.offset:]
        cursor.offset += len(text)

    def _break_line(self) -> None:
        cursor = self._ensure_cursor()
        node = cursor.node
        tail = node.text[cursor.offset:]
        node.text = node.text[: cursor.offset]
        new_line = line_node(tail)
        self._insert_after(self.current_line(), new_line)
        self.place_cursor(new_line, 0)

    def _insert_after(self, anchor: Optional[SurfaceNode], node: SurfaceNode) -> None:
        node.parent = self.root
        if anchor is None:
            self.root.children.append(node)
        else:
            self.root.children.insert(self.root.children.index(anchor) + 1, node)

    def _replace_line(self, old: SurfaceNode, new: SurfaceNode) -> None:
        index = self.root.children.index(old)
        new.parent = self.root
        self.root.children[index] = new
        old.parent = None

    # ------------------------------------------------------------------
    # Structural edits used by the command menu
    # ------------------------------------------------------------------
    def remove_trigger(self, trigger: str = "/") -> bool:
        """Delete ``trigger`` when it sits right before the cursor."""

        if self.cursor is None or not self.text_before_cursor().endswith(trigger):
            return False
        node, offset = self.cursor.node, self.cursor.offset
        index = offset - len(trigger)
        node.text = node.text[:index] + node.text[offset:]
        self.cursor.offset = index
        self._changed()
        return True

    def convert_line(self, block: ContentBlock) -> None:
        """Turn the cursor's line into ``block``'s type, keeping the line's text."""

        line = self.current_line()
        text = line.text_content() if line is not None else ""
        if isinstance(block, Heading):
            new = heading_node(block.level, text)
        elif isinstance(block, ListItem):
            new = list_item_node(text)
        else:
            new = line_node(text)
        if line is None:
            self._insert_after(None, new)
        else:
            self._replace_line(line, new)
        self.place_cursor(new)
        self._changed()

    def insert_rule(self) -> None:
        self._insert_block_line(rule_node())

    def insert_page_link(self, target_id: int, title: str) -> SurfaceNode:
        node = page_link_node(target_id, title)
        self._insert_block_line(node)
        return node

    def _insert_block_line(self, node: SurfaceNode) -> None:
        line = self.current_line()
        if line is not None and line.md_prefix is None and not line.text_content().strip():
            self._replace_line(line, node)
        else:
            self._insert_after(line, node)
        follower = line_node()
        self._insert_after(node, follower)
        self.place_cursor(follower, 0)
        self._changed()

    # ------------------------------------------------------------------
    # HTML exchange
    # ------------------------------------------------------------------
    def to_html(self) -> str:
        return "".join(_render(node) for node in self.root.children)

    @classmethod
    def from_html(cls, markup: str) -> "EditorSurface":
        surface = cls()
        soup = BeautifulSoup(markup or "", "html.parser")
        for element in soup.contents:
            node = _node_from_soup(element)
            if node is not None:
                surface.root.append(node)
        return surface


def _render(node: SurfaceNode, *, editable: bool = True) -> str:
    if node.is_text:
        return render_inline(node.text) if editable else html.escape(node.text)
    if node.tag == "br":
        return "<br>"
    attrs = "".join(f' {name}="{html.escape(value, quote=True)}"' for name, value in node.attrs.items())
    if not node.editable:
        attrs += ' contenteditable="false"'
    inner = "".join(_render(child, editable=editable and node.editable) for child in node.children)
    return f"<{node.tag}{attrs}>{inner}</{node.tag}>"


def _node_from_soup(element) -> Optional[SurfaceNode]:
    if isinstance(element, Comment):
        return None
    if isinstance(element, NavigableString):
        text = str(element)
        return text_node(text) if text.strip() else None
    if not isinstance(element, Tag):
        return None

    if element.has_attr(PAGE_ID_ATTR):
        title = element.get(PAGE_TITLE_ATTR) or element.get_text(strip=True)
        return page_link_node(element[PAGE_ID_ATTR], title)

    prefix = element.get(MD_ATTR)
    if prefix:
        return tagged_node(prefix, _inline_markdown(element))

    if element.name == "br":
        return break_node()

    if _has_structure(element):
        container = SurfaceNode(element.name if element.name in LINE_TAGS else "div")
        for child in element.contents:
            node = _node_from_soup(child)
            if node is not None:
                container.append(node)
        return container

    return line_node(_inline_markdown(element))


def _has_structure(element: Tag) -> bool:
    for child in element.find_all(True):
        if child.name == "br" or child.name in LINE_TAGS:
            return True
        if child.has_attr(MD_ATTR) or child.has_attr(PAGE_ID_ATTR):
            return True
    return False


def _inline_markdown(element: Tag) -> str:
    """Read a line element back into dialect text, keeping its spacing."""

    parts = []
    for child in element.contents:
        if isinstance(child, Comment):
            continue
        if isinstance(child, Tag):
            if child.get("contenteditable") != "false":
                parts.append(_tag_markdown(child))
        else:
            parts.append(str(child))
    return "".join(parts).strip("\n").replace("\n", " ")


def _tag_markdown(tag: Tag) -> str:
    marker = INLINE_MARKERS.get(tag.name)
    if marker is not None:
        return marker + _inline_markdown(tag) + marker
    converted = markdownify(
        str(tag),
        strong_em_symbol=ASTERISK,
        escape_asterisks=False,
        escape_underscores=False,
        escape_misc=False,
    )
    return converted.strip("\n")


def _as_optional_int(value: object) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
