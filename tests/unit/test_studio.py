"""Unit tests for studio."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from conftest import FakePageClient, make_record

from fotons.api.errors import ConfigError, ImageValidationError, PageNotFoundError, UploadError
from fotons.api.models import TagInput
from fotons.editor.blocks import PageLink
from fotons.editor.commands import MenuAction
from fotons.studio import Studio


def _studio(client, **kwargs):
    kwargs.setdefault("delay", 10)
    return Studio(client, **kwargs)


class TestOpen:
    """Test loading a page into the editor."""

    def test_link_titles_are_refreshed_and_saved(self):
        """Outdated link titles are replaced and the new content saved."""
        client = FakePageClient([make_record(1, "Pai", "intro\n> [[page:2:Antigo]]"), make_record(2, "Atual")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            blocks = studio.surface.extract()
            await studio.close()
            return blocks

        blocks = asyncio.run(scenario())

        assert blocks[1] == PageLink(2, "Atual")
        assert client.updated[0][1].content == "intro\n> [[page:2:Atual]]"

    def test_unresolved_links_do_not_block_opening(self):
        """A failing link lookup keeps the snapshot and saves nothing."""
        client = FakePageClient([make_record(1, "Pai", "> [[page:2:Guardado]]")])
        client.failing_ids = {2}

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            extracted = studio.surface.extract()
            saved = await studio.close()
            return extracted, saved

        extracted, saved = asyncio.run(scenario())

        assert extracted == [PageLink(2, "Guardado")]
        assert not saved
        assert client.updated == []

    def test_missing_page_raises(self):
        """Opening a page that does not exist fails."""
        with pytest.raises(PageNotFoundError):
            asyncio.run(_studio(FakePageClient()).open(404))


class TestEditing:
    """Test edits flowing into autosave."""

    def test_new_page_is_created_under_parent(self):
        """Typing in a new titled page creates it under the given parent."""
        client = FakePageClient()

        async def scenario():
            studio = _studio(client)
            await studio.open(parent_id=5)
            studio.set_title("Diário")
            studio.type("Olá")
            studio.line_break()
            studio.type("mundo")
            await studio.close()
            return studio

        studio = asyncio.run(scenario())

        created = client.created[0]
        assert created.title == "Diário"
        assert created.content == "Olá\nmundo"
        assert created.parent_id == 5
        assert studio.page_id == 100

    def test_menu_creates_linked_page(self):
        """The sub-page command creates a child page and links to it."""
        client = FakePageClient([make_record(1, "Pai", "texto")])

        async def scenario():
            studio = _studio(client, linked_page_title="Filho")
            await studio.open(1)
            studio.type("/")
            assert studio.menu.is_open
            assert await studio.choose(MenuAction.SUBPAGE)
            await studio.close()
            return studio

        studio = asyncio.run(scenario())

        linked = client.created[0]
        assert linked.title == "Filho"
        assert linked.parent_id == 1
        assert linked.created_date is not None
        assert studio.content == "texto\n> [[page:100:Filho]]"
        assert client.updated[0][1].content == "texto\n> [[page:100:Filho]]"

    def test_escape_closes_menu(self):
        """Escape dismisses the menu without changing content."""
        client = FakePageClient([make_record(1, "Pai", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.type("/")
            consumed = studio.key("Escape")
            return studio, consumed

        studio, consumed = asyncio.run(scenario())

        assert consumed
        assert not studio.menu.is_open
        assert studio.content == "/"

    def test_tags(self):
        """Tags are unique by name and can be removed."""
        client = FakePageClient([make_record(1, "Pai", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.add_tag("collection")
            studio.add_tag("collection", "#fff")
            studio.add_tag("  ")
            studio.add_tag("callout")
            studio.remove_tag("collection")
            return studio.coordinator.fields.tags

        assert asyncio.run(scenario()) == (TagInput("callout"),)

    def test_set_tags_drops_duplicates(self):
        """Replacing the tag list keeps the first tag of each name."""
        client = FakePageClient([make_record(1, "Pai", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.set_tags([TagInput("a", "#1"), TagInput("a", "#2"), TagInput("b")])
            return studio.coordinator.fields.tags

        assert asyncio.run(scenario()) == (TagInput("a", "#1"), TagInput("b"))

    def test_metadata_fields_are_checked(self):
        """Only page metadata can be set through set_metadata."""
        client = FakePageClient([make_record(1, "Pai", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.set_metadata(year=2024, month=5)
            with pytest.raises(ValueError):
                studio.set_metadata(title="x")
            await studio.close()

        asyncio.run(scenario())

        assert client.updated[0][1].year == 2024

    def test_refresh_keeps_local_edits(self):
        """A refresh records the server copy without touching edits."""
        client = FakePageClient([make_record(1, "Servidor", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.set_title("Local")
            await studio.refresh()
            return studio

        studio = asyncio.run(scenario())

        assert studio.coordinator.fields.title == "Local"
        assert studio.coordinator.remote.title == "Servidor"

    def test_replace_content(self):
        """Replacing the text goes through the codec."""
        client = FakePageClient([make_record(1, "Pai", "")])

        async def scenario():
            studio = _studio(client)
            await studio.open(1)
            studio.replace_content("* a\n\n\n")
            return studio.content

        assert asyncio.run(scenario()) == "- a"


class TestImages:
    """Test attaching images."""

    def test_attach_image(self):
        """An uploaded image becomes the page image."""
        client = FakePageClient([make_record(1, "Pai", "")])
        uploader = Mock()
        uploader.upload = AsyncMock(return_value="https://cdn/img.png")

        async def scenario():
            studio = _studio(client, uploader=uploader)
            await studio.open(1)
            url = await studio.attach_image(b"x", "img.png", "image/png")
            return studio, url

        studio, url = asyncio.run(scenario())

        assert url == "https://cdn/img.png"
        assert studio.coordinator.fields.image == url
        uploader.upload.assert_awaited_once_with(b"x", "img.png", "image/png", folder="images")

    def test_thumbnail(self):
        """Thumbnails go to their own folder and field."""
        client = FakePageClient([make_record(1, "Pai", "")])
        uploader = Mock()
        uploader.upload = AsyncMock(return_value="https://cdn/t.png")

        async def scenario():
            studio = _studio(client, uploader=uploader)
            await studio.open(1)
            await studio.attach_image(b"x", "t.png", "image/png", thumbnail=True)
            return studio.coordinator.fields.thumbnail

        assert asyncio.run(scenario()) == "https://cdn/t.png"
        assert uploader.upload.await_args.kwargs == {"folder": "thumbnails"}

    def test_upload_failure_is_reported(self):
        """Upload errors are kept on the studio instead of raised."""
        client = FakePageClient([make_record(1, "Pai", "")])
        uploader = Mock()
        uploader.upload = AsyncMock(side_effect=UploadError())

        async def scenario():
            studio = _studio(client, uploader=uploader)
            await studio.open(1)
            url = await studio.attach_image(b"x", "img.png", "image/png")
            return studio, url

        studio, url = asyncio.run(scenario())

        assert url is None
        assert isinstance(studio.last_error, UploadError)
        assert studio.coordinator.fields.image == ""

    def test_validation_error_is_raised(self):
        """Invalid files are reported to the caller."""
        uploader = Mock()
        uploader.upload = AsyncMock(side_effect=ImageValidationError("Please select an image file"))

        async def scenario():
            studio = _studio(FakePageClient(), uploader=uploader)
            await studio.attach_image(b"x", "a.txt", "text/plain")

        with pytest.raises(ImageValidationError):
            asyncio.run(scenario())

    def test_no_storage_configured(self):
        """Attaching without an uploader is a configuration error."""
        with pytest.raises(ConfigError):
            asyncio.run(_studio(FakePageClient()).attach_image(b"x", "a.png", "image/png"))
