"""Editing session for one page: surface, command menu, link titles, autosave."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from fotons.api.client import PageRepositoryClient
from fotons.api.errors import ConfigError, UploadError
from fotons.api.models import PageInput, PageRecord, TagInput
from fotons.editor.autosave import AutosaveCoordinator, DEFAULT_DELAY, SaveStatus
from fotons.editor.codec import parse, serialize
from fotons.editor.commands import CommandMenu, MenuAction
from fotons.editor.links import resolve_page_links
from fotons.editor.surface import EditorSurface
from fotons.storage.upload import ImageUploader

logger = logging.getLogger(__name__)


DEFAULT_LINKED_PAGE_TITLE = "Novo Fóton"
METADATA_FIELDS = ("image", "thumbnail", "day", "month", "year", "hour", "minute")


class Studio:
    """Coordinate editing of a single page.

    Changes to the surface are serialized into dialect text and handed to the
    autosave coordinator together with title and metadata edits.
    """

    def __init__(
        self,
        client: PageRepositoryClient,
        *,
        uploader: Optional[ImageUploader] = None,
        delay: float = DEFAULT_DELAY,
        linked_page_title: str = DEFAULT_LINKED_PAGE_TITLE,
        navigate: Optional[Callable[[int], None]] = None,
        on_status: Optional[Callable[[SaveStatus], None]] = None,
    ) -> None:
        self.client = client
        self.uploader = uploader
        self.delay = delay
        self.linked_page_title = linked_page_title
        self.navigate = navigate
        self.on_status = on_status
        self.last_error: Optional[Exception] = None

        self.surface = EditorSurface()
        self.menu = CommandMenu(self.surface, create_linked_page=self._create_linked_page)
        self.coordinator = AutosaveCoordinator(client, delay=delay, navigate=navigate, on_status=on_status)
        self.surface.on_change(self._sync_content)

    @property
    def page_id(self) -> Optional[int]:
        return self.coordinator.record_id

    @property
    def status(self) -> SaveStatus:
        return self.coordinator.status

    @property
    def content(self) -> str:
        return self.coordinator.fields.content

    async def open(self, page_id: Optional[int] = None, *, parent_id: Optional[int] = None) -> "Studio":
        """Load ``page_id`` (or start a new page) and mount its content."""

        record: Optional[PageRecord] = None
        if page_id is not None:
            record = await self.client.get_page(page_id)

        self.coordinator = AutosaveCoordinator(
            self.client,
            record=record,
            parent_id=parent_id,
            delay=self.delay,
            navigate=self.navigate,
            on_status=self.on_status,
        )

        blocks = parse(record.content if record else "")
        resolved = await resolve_page_links(blocks, self.client.get_page)
        self.surface.mount(resolved)
        if resolved != blocks:
            self.coordinator.update(content=serialize(resolved))
        return self

    async def refresh(self) -> None:
        """Fetch the page again in the background; local edits are kept."""

        if self.page_id is None:
            return
        record = await self.client.get_page(self.page_id)
        self.coordinator.reconcile(record)

    async def close(self) -> bool:
        return await self.coordinator.flush()

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------
    def set_title(self, title: str) -> None:
        self.coordinator.update(title=title)

    def set_metadata(self, **values) -> None:
        unknown = set(values) - set(METADATA_FIELDS)
        if unknown:
            raise ValueError(f"Not a metadata field: {', '.join(sorted(unknown))}")
        self.coordinator.update(**values)

    def add_tag(self, name: str, color: Optional[str] = None) -> None:
        name = name.strip()
        if not name:
            return
        tags = self.coordinator.fields.tags
        if any(tag.name == name for tag in tags):
            return
        self.coordinator.update(tags=tags + (TagInput(name=name, color=color),))

    def remove_tag(self, name: str) -> None:
        tags = self.coordinator.fields.tags
        self.coordinator.update(tags=tuple(tag for tag in tags if tag.name != name))

    def set_tags(self, tags: Iterable[TagInput]) -> None:
        unique: dict[str, TagInput] = {}
        for tag in tags:
            unique.setdefault(tag.name, tag)
        self.coordinator.update(tags=tuple(unique.values()))

    async def attach_image(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        *,
        thumbnail: bool = False,
    ) -> Optional[str]:
        """Upload an image and use it as the page image (or thumbnail).

        Validation errors propagate so they can be shown next to the control;
        upload failures are logged and reported through ``last_error``.
        """

        if self.uploader is None:
            raise ConfigError("Image storage is not configured")
        folder = "thumbnails" if thumbnail else "images"
        try:
            url = await self.uploader.upload(data, filename, content_type, folder=folder)
        except UploadError as exc:
            logger.error(f"Image upload failed: {exc}")
            self.last_error = exc
            return None
        self.last_error = None
        self.coordinator.update(**{"thumbnail" if thumbnail else "image": url})
        return url

    # ------------------------------------------------------------------
    # Content edits
    # ------------------------------------------------------------------
    def type(self, text: str) -> None:
        self.surface.type_text(text)

    def line_break(self) -> None:
        self.surface.insert_line_break()

    def key(self, key: str) -> bool:
        return self.menu.handle_key(key)

    async def choose(self, action: MenuAction | str) -> bool:
        return await self.menu.select(action)

    def replace_content(self, text: str) -> None:
        """Replace the whole content, as when pasting an edited document."""

        self.surface.mount(parse(text))
        self._sync_content()

    def _sync_content(self) -> None:
        self.coordinator.update(content=serialize(self.surface.extract()))

    async def _create_linked_page(self) -> PageRecord:
        return await self.client.create_page(
            PageInput(
                title=self.linked_page_title,
                content="",
                created_date=datetime.now(timezone.utc).isoformat(),
                parent_id=self.page_id,
            )
        )
