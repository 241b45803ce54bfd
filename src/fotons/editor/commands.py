"""The "/" command menu for inserting structural elements."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from fotons.api.errors import FotonsError
from fotons.api.models import PageRecord

from .blocks import Heading, ListItem, Paragraph
from .surface import EditorSurface

logger = logging.getLogger(__name__)


TRIGGER = "/"
ESCAPE = "Escape"

LinkedPageFactory = Callable[[], Awaitable[PageRecord]]


class MenuAction(str, Enum):
    SUBPAGE = "subpage"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    LIST = "list"
    HR = "hr"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class MenuOption:
    label: str
    action: MenuAction
    description: str


MENU_OPTIONS: tuple[MenuOption, ...] = (
    MenuOption("Novo Fóton", MenuAction.SUBPAGE, "Criar página vinculada"),
    MenuOption("Título 1", MenuAction.H1, "Título grande"),
    MenuOption("Título 2", MenuAction.H2, "Título médio"),
    MenuOption("Título 3", MenuAction.H3, "Título pequeno"),
    MenuOption("Lista", MenuAction.LIST, "Lista com marcadores"),
    MenuOption("Linha horizontal", MenuAction.HR, "Divisor"),
    MenuOption("Texto", MenuAction.TEXT, "Parágrafo normal"),
)

_LINE_CONVERSIONS = {
    MenuAction.H1: Heading(level=1, text=""),
    MenuAction.H2: Heading(level=2, text=""),
    MenuAction.H3: Heading(level=3, text=""),
    MenuAction.LIST: ListItem(text=""),
    MenuAction.TEXT: Paragraph(text=""),
}


@dataclass(frozen=True, slots=True)
class MenuPosition:
    """Where the menu is anchored: line index and column of the cursor."""

    line: int
    column: int


class CommandMenu:
    """Opens when ``/`` is typed at the cursor and applies the chosen insertion."""

    def __init__(
        self,
        surface: EditorSurface,
        *,
        create_linked_page: Optional[LinkedPageFactory] = None,
    ) -> None:
        self.surface = surface
        self.create_linked_page = create_linked_page
        self.position: Optional[MenuPosition] = None
        surface.on_input(self.refresh)

    @property
    def is_open(self) -> bool:
        return self.position is not None

    @property
    def options(self) -> tuple[MenuOption, ...]:
        return MENU_OPTIONS

    def refresh(self) -> None:
        """Open at the cursor if the text before it ends in the trigger, else close."""

        if self.surface.text_before_cursor().endswith(TRIGGER):
            line = self.surface.current_line()
            cursor = self.surface.cursor
            assert line is not None and cursor is not None
            self.position = MenuPosition(line=self.surface.lines.index(line), column=cursor.offset)
        else:
            self.close()

    def close(self) -> None:
        self.position = None

    def handle_key(self, key: str) -> bool:
        """Return True when the key was consumed by the menu."""

        if self.is_open and key == ESCAPE:
            self.close()
            return True
        return False

    async def select(self, action: MenuAction | str) -> bool:
        """Apply ``action`` at the trigger; ignored while the menu is closed."""

        action = MenuAction(action)
        if not self.is_open or self.surface.cursor is None:
            return False
        self.close()

        self.surface.remove_trigger(TRIGGER)

        if action is MenuAction.SUBPAGE:
            return await self._insert_linked_page()
        if action is MenuAction.HR:
            self.surface.insert_rule()
            return True
        self.surface.convert_line(_LINE_CONVERSIONS[action])
        return True

    async def _insert_linked_page(self) -> bool:
        if self.create_linked_page is None:
            logger.warning("No page factory configured; cannot create a linked page")
            return False
        try:
            page = await self.create_linked_page()
        except FotonsError as exc:
            logger.error(f"Failed to create linked page: {exc}")
            return False
        self.surface.insert_page_link(page.id, page.title)
        return True
