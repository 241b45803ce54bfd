"""Pages stored on disk as dialect text with YAML frontmatter."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import frontmatter

from fotons.api.models import PageRecord, TagInput

from .naming import page_filename


DATE_FIELDS = ("day", "month", "year", "hour", "minute")


@dataclass(slots=True)
class PageFileMetadata:
    """Metadata persisted in the frontmatter of a page file."""

    title: str
    page_id: Optional[int] = None
    parent_id: Optional[int] = None
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    tags: list[TagInput] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: PageRecord) -> "PageFileMetadata":
        return cls(
            title=record.title,
            page_id=record.id,
            parent_id=record.parent_id,
            image=record.image,
            thumbnail=record.thumbnail,
            day=record.day,
            month=record.month,
            year=record.year,
            hour=record.hour,
            minute=record.minute,
            tags=[tag.as_input() for tag in record.tags],
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "page_id": self.page_id,
            "parent_id": self.parent_id,
            "image": self.image,
            "thumbnail": self.thumbnail,
        }
        for name in DATE_FIELDS:
            data[name] = getattr(self, name)
        data["tags"] = [tag.to_payload() for tag in self.tags]
        return data


@dataclass(slots=True)
class PageFile:
    """A page file read from or written to disk."""

    path: Path
    metadata: PageFileMetadata
    body: str

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def page_id(self) -> Optional[int]:
        return self.metadata.page_id


def read_page_file(path: Path) -> PageFile:
    post = frontmatter.load(path)
    meta = post.metadata
    tags = [
        TagInput(name=str(tag["name"]), color=tag.get("color"))
        for tag in meta.get("tags") or []
        if isinstance(tag, dict) and tag.get("name")
    ]
    metadata = PageFileMetadata(
        title=str(meta.get("title") or path.stem),
        page_id=_as_optional_int(meta.get("page_id")),
        parent_id=_as_optional_int(meta.get("parent_id")),
        image=meta.get("image") or None,
        thumbnail=meta.get("thumbnail") or None,
        tags=tags,
        **{name: _as_optional_int(meta.get(name)) for name in DATE_FIELDS},
    )
    return PageFile(path=path, metadata=metadata, body=post.content)


def save_page_file(page: PageFile) -> None:
    post = frontmatter.Post(page.body)
    post.metadata.update(page.metadata.to_dict())
    page.path.parent.mkdir(parents=True, exist_ok=True)
    with page.path.open("w", encoding="utf-8") as handle:
        frontmatter.dump(post, handle)


def write_record(record: PageRecord, destination: Path) -> PageFile:
    """Write ``record`` to ``destination`` (a file, or a directory to name it in)."""

    path = destination / page_filename(record.title, record.id) if destination.is_dir() else destination
    page = PageFile(path=path, metadata=PageFileMetadata.from_record(record), body=record.content or "")
    save_page_file(page)
    return page


def _as_optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
