"""Debounced autosave of the page being edited.

All edits go through ``AutosaveCoordinator.update``. One timer, keyed on
the time of the last change, fires once the fields have been quiet for
``delay`` seconds; each firing evaluates ``should_save`` exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from fotons.api.errors import FotonsError
from fotons.api.models import PageInput, PageRecord, TagInput

logger = logging.getLogger(__name__)


DEFAULT_DELAY = 1.0


class SaveStatus(str, Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    SAVING = "saving"


class RetryPolicy(str, Enum):
    """How a failed save is retried."""

    ON_NEXT_QUALIFYING_CHANGE = "on-next-qualifying-change"


class PageWriter(Protocol):
    async def create_page(self, page: PageInput) -> PageRecord: ...

    async def update_page(self, page_id: int, page: PageInput) -> PageRecord: ...


@dataclass(frozen=True, slots=True)
class EditFields:
    """Every field the editor watches, in its local (edited) form."""

    title: str = ""
    content: str = ""
    image: str = ""
    thumbnail: str = ""
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    tags: tuple[TagInput, ...] = ()

    @classmethod
    def from_record(cls, record: PageRecord) -> "EditFields":
        return cls(
            title=record.title,
            content=record.content or "",
            image=record.image or "",
            thumbnail=record.thumbnail or "",
            day=record.day,
            month=record.month,
            year=record.year,
            hour=record.hour,
            minute=record.minute,
            tags=tuple(tag.as_input() for tag in record.tags),
        )

    def tag_set(self) -> frozenset[tuple[str, Optional[str]]]:
        return frozenset((tag.name, tag.color) for tag in self.tags)

    def differs_from(self, other: "EditFields") -> bool:
        for name in WATCHED_FIELDS:
            if name == "tags":
                if self.tag_set() != other.tag_set():
                    return True
            elif getattr(self, name) != getattr(other, name):
                return True
        return False

    def to_input(self, *, created_date: Optional[str] = None, parent_id: Optional[int] = None) -> PageInput:
        return PageInput(
            title=self.title,
            content=self.content or None,
            image=self.image or None,
            thumbnail=self.thumbnail or None,
            day=self.day,
            month=self.month,
            year=self.year,
            hour=self.hour,
            minute=self.minute,
            tags=list(self.tags),
            created_date=created_date,
            parent_id=parent_id,
        )


WATCHED_FIELDS = tuple(item.name for item in fields(EditFields))


def should_save(current: EditFields, persisted: EditFields, *, is_new: bool) -> bool:
    if not current.title.strip():
        return False
    if is_new:
        return bool(current.title or current.content)
    return current.differs_from(persisted)


class AutosaveCoordinator:
    """Persist edits of one page without explicit save actions.

    A new page is created on its first qualifying save and updated from then
    on. After an update the persisted snapshot advances to the values that
    were sent, never to what the server returns, so edits typed while the
    request was in flight are not lost.
    """

    retry_policy = RetryPolicy.ON_NEXT_QUALIFYING_CHANGE

    def __init__(
        self,
        client: PageWriter,
        *,
        record: Optional[PageRecord] = None,
        parent_id: Optional[int] = None,
        delay: float = DEFAULT_DELAY,
        navigate: Optional[Callable[[int], None]] = None,
        on_status: Optional[Callable[[SaveStatus], None]] = None,
    ) -> None:
        self.client = client
        self.parent_id = parent_id
        self.delay = delay
        self.navigate = navigate
        self.on_status = on_status

        self.status = SaveStatus.IDLE
        self.record_id: Optional[int] = None
        self.remote: Optional[PageRecord] = None
        self.fields = EditFields()
        self.persisted = EditFields()
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[Exception] = None
        self.evaluations = 0

        self._last_changed_at: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._save_task: Optional[asyncio.Task] = None
        self._save_deferred = False

        if record is not None:
            self.load(record)

    @property
    def is_new(self) -> bool:
        return self.record_id is None

    @property
    def is_saving(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    def _set_status(self, status: SaveStatus) -> None:
        if status is self.status:
            return
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    # ------------------------------------------------------------------
    # Remote state
    # ------------------------------------------------------------------
    def load(self, record: PageRecord) -> None:
        """Adopt ``record`` as both the edit state and the persisted snapshot.

        Only for the initial load or an explicit reload requested by the user.
        """

        self._cancel_timer()
        self.record_id = record.id
        self.parent_id = record.parent_id
        self.remote = record
        self.fields = EditFields.from_record(record)
        self.persisted = self.fields
        self._set_status(SaveStatus.IDLE)

    def reconcile(self, record: PageRecord) -> None:
        """Take note of a background fetch without touching local edits."""

        if record.id != self.record_id:
            logger.debug(f"Ignoring fetched page {record.id}; editing {self.record_id}")
            return
        self.remote = record
        if EditFields.from_record(record).differs_from(self.fields):
            logger.debug(f"Keeping local edits of page {record.id} over fetched copy")

    # ------------------------------------------------------------------
    # Edits and debounce
    # ------------------------------------------------------------------
    def update(self, **changes) -> None:
        unknown = set(changes) - set(WATCHED_FIELDS)
        if unknown:
            raise ValueError(f"Unknown page fields: {', '.join(sorted(unknown))}")
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"])

        updated = replace(self.fields, **changes)
        if updated == self.fields:
            return
        self.fields = updated

        loop = asyncio.get_running_loop()
        self._last_changed_at = loop.time()
        if not self.is_saving:
            self._set_status(SaveStatus.DIRTY)
        if self._timer is None:
            self._timer = loop.call_later(self.delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        loop = asyncio.get_running_loop()
        remaining = (self._last_changed_at or 0.0) + self.delay - loop.time()
        if remaining > 0:
            self._timer = loop.call_later(remaining, self._on_timer)
            return
        self._settle()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _evaluate(self) -> bool:
        self.evaluations += 1
        return should_save(self.fields, self.persisted, is_new=self.is_new)

    def _settle(self) -> None:
        if not self._evaluate():
            if self.status is SaveStatus.DIRTY:
                self._set_status(SaveStatus.IDLE)
            return
        if self.is_saving:
            self._save_deferred = True
            return
        self._save_task = asyncio.get_running_loop().create_task(self._save())

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------
    async def _save(self) -> bool:
        sent = self.fields
        self._set_status(SaveStatus.SAVING)
        try:
            if self.is_new:
                record = await self.client.create_page(
                    sent.to_input(created_date=_now_iso(), parent_id=self.parent_id)
                )
                self.record_id = record.id
                self.remote = record
                logger.info(f"Created page {record.id}")
                if self.navigate is not None:
                    self.navigate(record.id)
            else:
                await self.client.update_page(self.record_id, sent.to_input())
                logger.debug(f"Updated page {self.record_id}")
        except FotonsError as exc:
            logger.error(f"Failed to save page: {exc}")
            self.last_error = exc
            return False
        else:
            self.persisted = sent
            self.last_saved_at = datetime.now()
            self.last_error = None
            return True
        finally:
            self._set_status(SaveStatus.DIRTY if self._timer is not None else SaveStatus.IDLE)
            if self._save_deferred:
                self._save_deferred = False
                asyncio.get_running_loop().call_soon(self._settle)

    async def wait_idle(self) -> None:
        while self.is_saving:
            await asyncio.shield(self._save_task)

    async def flush(self) -> bool:
        """Evaluate pending edits now instead of waiting for the debounce."""

        self._cancel_timer()
        await self.wait_idle()
        self._save_deferred = False
        if not self._evaluate():
            if self.status is SaveStatus.DIRTY:
                self._set_status(SaveStatus.IDLE)
            return False
        self._save_task = asyncio.get_running_loop().create_task(self._save())
        return await self._save_task


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
