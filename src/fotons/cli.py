"""Command-line interface for the Biblioteca de Fótons page catalogue."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from .api.client import PageRepositoryClient, create_client
from .api.errors import ConfigError, FotonsError
from .api.models import PageFilter, PageRecord
from .api.session import SessionContext
from .catalog import TAB_LABELS, CatalogTab, date_label, featured_page, filter_pages
from .config import FotonsConfig, ensure_config
from .editor.codec import parse
from .editor.links import resolve_content_links
from .editor.surface import EditorSurface
from .local.files import read_page_file, save_page_file, write_record
from .storage.upload import ImageUploader
from .studio import Studio

app = typer.Typer(help="Browse and edit the pages of a Biblioteca de Fótons server.")
console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration TOML file",
    ),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Base URL of the pages API"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    _configure_logging(verbose)
    ctx.obj = {"config_path": config_path, "base_url": base_url}


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _fail(exc: Exception) -> typer.Exit:
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    return typer.Exit(code=1)


def _load_config(ctx: typer.Context) -> FotonsConfig:
    try:
        return ensure_config(base_url=ctx.obj.get("base_url"), config_path=ctx.obj.get("config_path"))
    except ConfigError as exc:
        raise _fail(exc)


def _build_client(config: FotonsConfig) -> PageRepositoryClient:
    session = SessionContext.load(config.session_path)
    return create_client(base_url=str(config.api.base_url), session=session, timeout=config.api.timeout)


def _build_uploader(config: FotonsConfig) -> ImageUploader:
    storage = config.storage
    if storage.endpoint is None:
        raise ConfigError("Image storage is not configured (set storage.endpoint)")
    return ImageUploader(endpoint=str(storage.endpoint), api_key=storage.api_key, bucket=storage.bucket)


def _build_studio(config: FotonsConfig, client: PageRepositoryClient, uploader: Optional[ImageUploader] = None) -> Studio:
    return Studio(
        client,
        uploader=uploader,
        delay=config.editor.autosave_delay,
        linked_page_title=config.editor.linked_page_title,
    )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except FotonsError as exc:
        raise _fail(exc)


def _tags_label(page: PageRecord) -> str:
    return ", ".join(page.tag_names)


# ----------------------------------------------------------------------
# Session commands
# ----------------------------------------------------------------------
@app.command()
def login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True, help="Account password"),
) -> None:
    """Sign in and store the session locally."""

    config = _load_config(ctx)

    async def _login():
        async with _build_client(config) as client:
            return await client.login(email, password)

    user = _run(_login())
    console.print(f"Signed in as [bold]{user.full_name or user.email}[/bold] ({user.role.value}).")


@app.command()
def logout(ctx: typer.Context) -> None:
    """Sign out and remove the stored session."""

    config = _load_config(ctx)

    async def _logout() -> bool:
        async with _build_client(config) as client:
            if not client.session.is_authenticated:
                return False
            await client.logout()
            return True

    if _run(_logout()):
        console.print("Signed out.")
    else:
        console.print("Not signed in.")


@app.command()
def whoami(ctx: typer.Context) -> None:
    """Show the signed-in user, refreshing the session when needed."""

    config = _load_config(ctx)

    async def _whoami():
        async with _build_client(config) as client:
            return await client.validate_session()

    user = _run(_whoami())
    table = Table(show_header=False)
    table.add_row("Name", user.full_name or "-")
    table.add_row("Email", user.email)
    table.add_row("Role", user.role.value)
    console.print(table)


# ----------------------------------------------------------------------
# Browsing
# ----------------------------------------------------------------------
@app.command("list")
def list_pages(
    ctx: typer.Context,
    tab: CatalogTab = typer.Option(CatalogTab.LIBRARY, "--tab", "-t", help="Catalogue tab to show"),
    search: str = typer.Option("", "--search", "-s", help="Filter by title, description or content"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only pages with this tag"),
    parent_id: Optional[int] = typer.Option(None, "--parent-id", help="Only children of this page"),
    limit: int = typer.Option(500, "--limit", min=1, help="Maximum number of pages to fetch"),
) -> None:
    """List pages the way the home page shows them."""

    config = _load_config(ctx)

    async def _list():
        async with _build_client(config) as client:
            return await client.list_pages(PageFilter(parent_id=parent_id, tag=tag, limit=limit))

    result = _run(_list())
    pages = filter_pages(result.pages, tab=tab, search=search)
    if not pages:
        console.print("No pages found.")
        return

    featured = featured_page(pages, tab)
    if featured is not None:
        console.print(f"Featured: [bold]{featured.title}[/bold] ({date_label(featured)})")

    table = Table(title=f"{TAB_LABELS[tab]} ({len(pages)} of {result.total})")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Date")
    table.add_column("Tags")
    for page in pages:
        table.add_row(str(page.id), page.title, date_label(page), _tags_label(page))
    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    page_id: int = typer.Argument(..., help="Page to show"),
    raw: bool = typer.Option(False, "--raw", help="Print the stored text as-is"),
    html: bool = typer.Option(False, "--html", help="Print the editor HTML"),
) -> None:
    """Show a page with its linked-page titles brought up to date."""

    config = _load_config(ctx)

    async def _show():
        async with _build_client(config) as client:
            page = await client.get_page(page_id)
            content = await resolve_content_links(page.content or "", client.get_page)
            return page, content

    page, content = _run(_show())
    if raw:
        console.print(content, markup=False, highlight=False)
        return
    if html:
        surface = EditorSurface()
        surface.mount(parse(content))
        console.print(surface.to_html(), markup=False, highlight=False)
        return

    console.print(f"[bold]{page.title}[/bold]")
    console.print(f"{date_label(page)}  {_tags_label(page)}".rstrip())
    console.print(Markdown(content))


# ----------------------------------------------------------------------
# Local files
# ----------------------------------------------------------------------
@app.command()
def pull(
    ctx: typer.Context,
    page_id: int = typer.Argument(..., help="Page to download"),
    output: Path = typer.Option(
        Path.cwd(),
        "--output",
        "-o",
        help="Directory (or file) to write the page to",
    ),
) -> None:
    """Download a page into a Markdown file with frontmatter."""

    config = _load_config(ctx)

    async def _pull():
        async with _build_client(config) as client:
            return await client.get_page(page_id)

    record = _run(_pull())
    page_file = write_record(record, output)
    console.print(f"Wrote page {record.id} to [bold]{page_file.path}[/bold].")


@app.command()
def push(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Page file to upload"),
) -> None:
    """Create or update a page from a local file."""

    config = _load_config(ctx)
    page_file = read_page_file(path)
    meta = page_file.metadata

    async def _push():
        async with _build_client(config) as client:
            await client.validate_session()
            studio = _build_studio(config, client)
            await studio.open(meta.page_id, parent_id=meta.parent_id)
            studio.set_title(meta.title)
            studio.set_metadata(
                image=meta.image or "",
                thumbnail=meta.thumbnail or "",
                day=meta.day,
                month=meta.month,
                year=meta.year,
                hour=meta.hour,
                minute=meta.minute,
            )
            studio.set_tags(meta.tags)
            studio.replace_content(page_file.body)
            await studio.close()
            return studio

    studio = _run(_push())
    coordinator = studio.coordinator
    if coordinator.last_error is not None:
        raise _fail(coordinator.last_error)
    if coordinator.last_saved_at is None:
        console.print("No changes to push.")
        return
    if meta.page_id != studio.page_id:
        meta.page_id = studio.page_id
        save_page_file(page_file)
    console.print(f"Saved page {studio.page_id}.")


# ----------------------------------------------------------------------
# Editing
# ----------------------------------------------------------------------
@app.command()
def edit(
    ctx: typer.Context,
    page_id: Optional[int] = typer.Argument(None, help="Page to edit; omit to create one"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    parent_id: Optional[int] = typer.Option(None, "--parent-id", help="Parent of a new page"),
) -> None:
    """Edit a page's text in $EDITOR; the result is saved automatically."""

    if page_id is None and not title:
        raise typer.BadParameter("A new page needs --title")

    config = _load_config(ctx)

    async def _edit():
        async with _build_client(config) as client:
            await client.validate_session()
            studio = _build_studio(config, client)
            await studio.open(page_id, parent_id=parent_id)
            if title:
                studio.set_title(title)
            edited = click.edit(studio.content, extension=".md")
            if edited is not None:
                studio.replace_content(edited)
            await studio.close()
            return studio

    studio = _run(_edit())
    coordinator = studio.coordinator
    if coordinator.last_error is not None:
        raise _fail(coordinator.last_error)
    if coordinator.last_saved_at is None:
        console.print("No changes saved.")
    else:
        console.print(f"Saved page {studio.page_id}.")


@app.command()
def delete(
    ctx: typer.Context,
    page_id: int = typer.Argument(..., help="Page to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a page."""

    if not yes:
        typer.confirm(f"Delete page {page_id}?", abort=True)

    config = _load_config(ctx)

    async def _delete():
        async with _build_client(config) as client:
            return await client.delete_page(page_id)

    message = _run(_delete())
    console.print(message or f"Deleted page {page_id}.")


@app.command("upload-image")
def upload_image(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image file to upload"),
    page_id: Optional[int] = typer.Option(None, "--page-id", help="Attach the image to this page"),
    thumbnail: bool = typer.Option(False, "--thumbnail", help="Use as the page thumbnail"),
) -> None:
    """Upload an image and optionally attach it to a page."""

    config = _load_config(ctx)
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    data = path.read_bytes()

    async def _upload() -> Optional[str]:
        async with _build_uploader(config) as uploader:
            if page_id is None:
                folder = "thumbnails" if thumbnail else "images"
                return await uploader.upload(data, path.name, content_type, folder=folder)
            async with _build_client(config) as client:
                studio = _build_studio(config, client, uploader)
                await studio.open(page_id)
                url = await studio.attach_image(data, path.name, content_type, thumbnail=thumbnail)
                if url is None:
                    raise studio.last_error
                await studio.close()
                if studio.coordinator.last_error is not None:
                    raise studio.coordinator.last_error
                return url

    url = _run(_upload())
    console.print(url)


def run() -> None:
    """Entry point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
