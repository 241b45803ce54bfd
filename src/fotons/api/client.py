"""Async HTTP client for the Biblioteca de Fótons REST API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .errors import ApiError, ApiUnreachableError, AuthenticationError, PageNotFoundError
from .models import AuthenticatedUser, PageFilter, PageInput, PageList, PageRecord, PageTag
from .session import SessionContext

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "http://localhost:3000"


class PageRepositoryClient:
    """Thin wrapper above the pages and auth endpoints."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[SessionContext] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.session = session or SessionContext()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            cookies=self.session.cookies,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PageRepositoryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    async def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.session.access_token:
            headers["Authorization"] = f"Bearer {self.session.access_token}"

        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.debug(f"{method} {url} failed: {exc}")
            raise ApiUnreachableError(self.base_url) from exc

        if response.is_error:
            raise self._to_error(response)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError("Invalid response format from API", status_code=response.status_code) from exc

    @staticmethod
    def _to_error(response: httpx.Response) -> ApiError:
        try:
            data = response.json()
        except ValueError:
            data = {}
        message = "API request failed"
        if isinstance(data, dict):
            message = data.get("message") or data.get("error") or message
        if response.status_code == 401:
            return AuthenticationError(message)
        return ApiError(message, status_code=response.status_code)

    def _store_session(self, access_token: str, user: Optional[AuthenticatedUser] = None) -> None:
        self.session.store(access_token, user=user, cookies=dict(self._client.cookies))

    # ------------------------------------------------------------------
    # Parsers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_page_record(data: dict) -> PageRecord:
        tags = [
            PageTag(id=int(tag.get("id", 0)), name=tag["name"], color=tag.get("color", ""))
            for tag in data.get("tags") or []
        ]
        return PageRecord(
            id=int(data["id"]),
            title=data.get("title", ""),
            content=data.get("content"),
            ai_desc=data.get("aiDesc"),
            image=data.get("image"),
            thumbnail=data.get("thumbnail"),
            parent_id=data.get("parentId"),
            order=data.get("order") or 0,
            day=data.get("day"),
            month=data.get("month"),
            year=data.get("year"),
            hour=data.get("hour"),
            minute=data.get("minute"),
            tags=tags,
            created_date=data.get("createdDate"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    @staticmethod
    def _to_page_list(data: dict) -> PageList:
        pages = [PageRepositoryClient._to_page_record(item) for item in data.get("pages", [])]
        return PageList(
            pages=pages,
            total=int(data.get("total", len(pages))),
            page=int(data.get("page", 1)),
            limit=int(data.get("limit", len(pages))),
            total_pages=int(data.get("totalPages", 1)),
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str) -> AuthenticatedUser:
        data = await self._request("POST", "api/auth/login", json={"email": email, "password": password})
        user = AuthenticatedUser.from_dict(data.get("user") or {})
        self._store_session(data["accessToken"], user)
        logger.info(f"Signed in as {user.email}")
        return user

    async def logout(self) -> None:
        try:
            await self._request("POST", "api/auth/logout")
        finally:
            self._client.cookies.clear()
            self.session.clear()

    async def get_me(self) -> AuthenticatedUser:
        data = await self._request("GET", "api/auth/me")
        return AuthenticatedUser.from_dict(data)

    async def refresh_token(self) -> str:
        data = await self._request("POST", "api/auth/refresh")
        self._store_session(data["accessToken"])
        return data["accessToken"]

    async def validate_session(self) -> AuthenticatedUser:
        """Confirm the stored token, refreshing it once if the server rejects it."""

        if not self.session.is_authenticated:
            raise AuthenticationError("Not signed in")
        try:
            user = await self.get_me()
        except ApiError as exc:
            logger.info(f"Stored token rejected ({exc}); refreshing")
            try:
                await self.refresh_token()
                user = await self.get_me()
            except ApiError as refresh_exc:
                self.session.clear()
                raise AuthenticationError("Session expired, please sign in again") from refresh_exc
        self.session.store(self.session.access_token, user=user, cookies=dict(self._client.cookies))
        return user

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    async def list_pages(self, page_filter: Optional[PageFilter] = None) -> PageList:
        params = (page_filter or PageFilter()).to_params()
        data = await self._request("GET", "api/pages", params=params or None)
        return self._to_page_list(data)

    async def get_page(self, page_id: int) -> PageRecord:
        try:
            data = await self._request("GET", f"api/pages/{page_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                raise PageNotFoundError(page_id) from exc
            raise
        return self._to_page_record(data)

    async def create_page(self, page: PageInput) -> PageRecord:
        data = await self._request("POST", "api/pages", json=page.to_payload())
        return self._to_page_record(data)

    async def update_page(self, page_id: int, page: PageInput) -> PageRecord:
        try:
            data = await self._request("PUT", f"api/pages/{page_id}", json=page.to_payload())
        except ApiError as exc:
            if exc.status_code == 404:
                raise PageNotFoundError(page_id) from exc
            raise
        return self._to_page_record(data)

    async def delete_page(self, page_id: int) -> str:
        try:
            data = await self._request("DELETE", f"api/pages/{page_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                raise PageNotFoundError(page_id) from exc
            raise
        return data.get("message", "")


def create_client(
    *,
    base_url: str,
    session: Optional[SessionContext] = None,
    timeout: float = 30.0,
) -> PageRepositoryClient:
    return PageRepositoryClient(base_url=base_url, session=session, timeout=timeout)
