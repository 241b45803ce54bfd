"""Typed models for page records exchanged with the REST API."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class TagInput:
    """Tag as sent by the client; the server assigns a colour when omitted."""

    name: str
    color: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.color is not None:
            payload["color"] = self.color
        return payload


@dataclass(slots=True)
class PageTag:
    """Tag attached to a persisted page."""

    id: int
    name: str
    color: str

    def as_input(self) -> TagInput:
        return TagInput(name=self.name, color=self.color)


@dataclass(slots=True)
class PageRecord:
    """Full page payload as stored by the API."""

    id: int
    title: str
    content: Optional[str] = None
    ai_desc: Optional[str] = None
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    parent_id: Optional[int] = None
    order: int = 0
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    tags: list[PageTag] = field(default_factory=list)
    created_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    def has_tag(self, name: str) -> bool:
        return any(tag.name == name for tag in self.tags)


@dataclass(slots=True)
class PageInput:
    """Fields accepted by the create and update endpoints.

    ``created_date`` is required by the create endpoint only; ``None`` values
    are sent as JSON ``null`` so cleared fields are cleared server side.
    """

    title: str
    content: Optional[str] = None
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    tags: list[TagInput] = field(default_factory=list)
    created_date: Optional[str] = None
    parent_id: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "content": self.content,
            "image": self.image,
            "thumbnail": self.thumbnail,
            "day": self.day,
            "month": self.month,
            "year": self.year,
            "hour": self.hour,
            "minute": self.minute,
            "tags": [tag.to_payload() for tag in self.tags],
        }
        if self.created_date is not None:
            payload["createdDate"] = self.created_date
        if self.parent_id is not None:
            payload["parentId"] = self.parent_id
        return payload


@dataclass(slots=True)
class PageFilter:
    """Query parameters for listing pages."""

    parent_id: Optional[int] = None
    tag: Optional[str] = None
    search: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None

    def to_params(self) -> dict[str, str]:
        raw = {
            "parentId": self.parent_id,
            "tag": self.tag,
            "search": self.search,
            "page": self.page,
            "limit": self.limit,
        }
        return {key: str(value) for key, value in raw.items() if value is not None}


@dataclass(slots=True)
class PageList:
    """One page of results from the listing endpoint."""

    pages: list[PageRecord]
    total: int
    page: int
    limit: int
    total_pages: int


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CONSULTANT = "CONSULTANT"
    STUDENT = "STUDENT"

    @classmethod
    def parse(cls, value: Optional[str]) -> "UserRole":
        try:
            return cls(value)
        except ValueError:
            return cls.STUDENT


@dataclass(slots=True)
class AuthenticatedUser:
    """The user behind the current session."""

    id: str
    email: str
    full_name: str
    role: UserRole = UserRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    @property
    def is_consultant(self) -> bool:
        return self.role is UserRole.CONSULTANT

    @property
    def is_student(self) -> bool:
        return self.role is UserRole.STUDENT

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "role": self.role.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            id=str(data.get("id", "")),
            email=data.get("email", ""),
            full_name=data.get("fullName", ""),
            role=UserRole.parse(data.get("role")),
        )
