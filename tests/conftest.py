"""Shared fixtures: an in-memory page repository and record factories."""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from fotons.api.errors import ApiError, PageNotFoundError
from fotons.api.models import AuthenticatedUser, PageList, PageRecord, PageTag, UserRole
from fotons.api.session import SessionContext


def make_record(page_id: int = 1, title: str = "Página", content: Optional[str] = "", **extra) -> PageRecord:
    tags = [
        PageTag(id=index, name=name, color="#000000")
        for index, name in enumerate(extra.pop("tag_names", []), start=1)
    ]
    return PageRecord(id=page_id, title=title, content=content, tags=tags, **extra)


class FakePageClient:
    """Async stand-in for PageRepositoryClient keeping pages in a dict."""

    def __init__(self, pages: Optional[list[PageRecord]] = None):
        self.pages = {page.id: page for page in pages or []}
        self.session = SessionContext()
        self.session.access_token = "token"
        self.user = AuthenticatedUser(id="u1", email="ana@example.com", full_name="Ana", role=UserRole.ADMIN)
        self.next_id = 100
        self.created = []
        self.updated = []
        self.deleted = []
        self.fetched = []
        self.failing_ids: set[int] = set()
        self.fail_writes = 0
        self.write_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self) -> "FakePageClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def _write(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.write_delay:
                await asyncio.sleep(self.write_delay)
            if self.fail_writes:
                self.fail_writes -= 1
                raise ApiError("Internal server error", status_code=500)
        finally:
            self.in_flight -= 1

    async def get_page(self, page_id: int) -> PageRecord:
        self.fetched.append(page_id)
        if page_id in self.failing_ids:
            raise ApiError("Internal server error", status_code=500)
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        return self.pages[page_id]

    async def create_page(self, page):
        await self._write()
        self.created.append(page)
        record = PageRecord(
            id=self.next_id,
            title=page.title,
            content=page.content,
            image=page.image,
            thumbnail=page.thumbnail,
            parent_id=page.parent_id,
            created_date=page.created_date,
        )
        self.pages[record.id] = record
        self.next_id += 1
        return record

    async def update_page(self, page_id: int, page):
        await self._write()
        self.updated.append((page_id, page))
        current = self.pages[page_id]
        record = PageRecord(
            id=page_id,
            title=page.title,
            content=page.content,
            image=page.image,
            thumbnail=page.thumbnail,
            parent_id=current.parent_id,
        )
        self.pages[page_id] = record
        return record

    async def delete_page(self, page_id: int) -> str:
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        del self.pages[page_id]
        self.deleted.append(page_id)
        return "Page deleted successfully"

    async def list_pages(self, page_filter=None) -> PageList:
        pages = list(self.pages.values())
        return PageList(pages=pages, total=len(pages), page=1, limit=500, total_pages=1)

    async def validate_session(self) -> AuthenticatedUser:
        return self.user

    async def login(self, email: str, password: str) -> AuthenticatedUser:
        self.session.access_token = "token"
        return self.user

    async def logout(self) -> None:
        self.session.access_token = None


@pytest.fixture
def fake_client():
    return FakePageClient()
