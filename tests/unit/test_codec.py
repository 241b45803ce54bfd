"""Unit tests for editor.codec and editor.blocks."""

import pytest

from fotons.editor.blocks import (
    UNTITLED_LINK,
    Blank,
    Heading,
    HorizontalRule,
    ListItem,
    PageLink,
    Paragraph,
    same_structure,
)
from fotons.editor.codec import (
    page_link_token,
    parse,
    parse_line,
    render_inline,
    replace_link_titles,
    serialize,
)


class TestParseLine:
    """Test the single-line classification rules."""

    def test_page_link(self):
        """A quoted page token becomes a page link."""
        assert parse_line("> [[page:42:Minha Página]]") == PageLink(target_id=42, title_snapshot="Minha Página")

    def test_page_link_without_space_after_marker(self):
        """Whitespace between '>' and the token is optional."""
        assert parse_line(">[[page:7:X]]") == PageLink(target_id=7, title_snapshot="X")

    def test_page_link_title_stops_at_first_closing_brackets(self):
        """Titles are matched lazily up to the first ']]'."""
        assert parse_line("> [[page:3:a]]b]]") == PageLink(target_id=3, title_snapshot="a")

    def test_page_link_wins_over_other_rules(self):
        """The page-link rule is checked before everything else."""
        block = parse_line("> [[page:1:# not a heading]]")
        assert isinstance(block, PageLink)

    def test_horizontal_rule_is_trimmed(self):
        """'---' surrounded by whitespace is still a rule."""
        assert parse_line("  ---  ") == HorizontalRule()

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("# Um", Heading(level=1, text="Um")),
            ("## Dois", Heading(level=2, text="Dois")),
            ("### Três", Heading(level=3, text="Três")),
        ],
    )
    def test_headings(self, line, expected):
        """Heading prefixes map to levels 1 to 3."""
        assert parse_line(line) == expected

    def test_four_hashes_is_a_paragraph(self):
        """Four hashes match no heading rule."""
        assert parse_line("#### x") == Paragraph(text="#### x")

    def test_hash_without_space_is_paragraph(self):
        """A heading prefix needs its trailing space."""
        assert parse_line("#tag") == Paragraph(text="#tag")

    @pytest.mark.parametrize("line", ["- item", "* item"])
    def test_list_items(self, line):
        """Both '- ' and '* ' start a list item."""
        assert parse_line(line) == ListItem(text="item")

    def test_empty_line_is_blank(self):
        """An empty line is a blank block."""
        assert parse_line("") == Blank()

    def test_paragraph_keeps_text_verbatim(self):
        """Anything else is a paragraph with its text untouched."""
        assert parse_line("  texto com **negrito**") == Paragraph(text="  texto com **negrito**")


class TestParse:
    """Test whole-document parsing."""

    def test_empty_input(self):
        """Empty or missing content yields no blocks."""
        assert parse("") == []
        assert parse(None) == []

    def test_mixed_document(self):
        """Every block kind is recognised line by line."""
        text = "# Título\n\nParágrafo\n- a\n---\n> [[page:5:Filho]]"
        assert parse(text) == [
            Heading(level=1, text="Título"),
            Blank(),
            Paragraph(text="Parágrafo"),
            ListItem(text="a"),
            HorizontalRule(),
            PageLink(target_id=5, title_snapshot="Filho"),
        ]

    def test_all_line_endings(self):
        """CRLF, CR and LF all separate lines."""
        assert parse("a\r\nb\rc\nd") == [Paragraph("a"), Paragraph("b"), Paragraph("c"), Paragraph("d")]

    def test_never_raises_on_odd_input(self):
        """Malformed tokens degrade to paragraphs."""
        assert parse("> [[page:abc:x]]") == [Paragraph(text="> [[page:abc:x]]")]


class TestSerialize:
    """Test block serialization."""

    def test_each_block_kind(self):
        """Blocks are written one per line with their prefixes."""
        blocks = [
            Heading(level=2, text="Seção"),
            Paragraph(text="Texto"),
            Blank(),
            ListItem(text="um"),
            HorizontalRule(),
            PageLink(target_id=9, title_snapshot="Outra"),
        ]
        assert serialize(blocks) == "## Seção\nTexto\n\n- um\n---\n> [[page:9:Outra]]"

    def test_trims_leading_and_trailing_blank_lines(self):
        """Blank blocks at either end are dropped, inner ones kept."""
        blocks = [Blank(), Paragraph("a"), Blank(), Paragraph("b"), Blank(), Blank()]
        assert serialize(blocks) == "a\n\nb"

    def test_empty(self):
        """No blocks serialize to an empty string."""
        assert serialize([]) == ""
        assert serialize([Blank(), Blank()]) == ""

    def test_star_list_items_come_back_as_dashes(self):
        """'* ' items are normalised to '- '."""
        assert serialize(parse("* item")) == "- item"

    def test_newlines_in_text_are_flattened(self):
        """A block's text can never break the one-line-per-block rule."""
        assert serialize([Paragraph(text="a\nb")]) == "a b"

    def test_canonical_text_round_trips(self):
        """Serializing parsed canonical text gives the same text back."""
        text = "# T\n\nfoo **bar**\n- x\n---\n> [[page:1:P]]\n### fim"
        assert serialize(parse(text)) == text

    def test_blocks_round_trip(self):
        """Parsing serialized blocks gives every block kind back."""
        blocks = [
            Heading(1, "Um"),
            Heading(2, "Dois"),
            Heading(3, ""),
            Paragraph("texto com *ênfase*"),
            Blank(),
            ListItem("item"),
            ListItem(""),
            HorizontalRule(),
            PageLink(7, "Nebulosa"),
            PageLink(8, ""),
            Paragraph("fim"),
        ]
        assert parse(serialize(blocks)) == blocks

    def test_empty_link_title_keeps_the_link(self):
        """A link without a title is still a link after a round trip."""
        assert PageLink(7, "").title_snapshot == UNTITLED_LINK
        assert parse(serialize([PageLink(7, "")])) == [PageLink(7, UNTITLED_LINK)]
        assert page_link_token(7, "") == f"> [[page:7:{UNTITLED_LINK}]]"


class TestBlocks:
    """Test block invariants."""

    def test_heading_level_is_validated(self):
        """Levels outside 1..3 are rejected."""
        with pytest.raises(ValueError):
            Heading(level=4, text="x")

    def test_same_structure_ignores_link_titles(self):
        """Two documents differing only in link snapshots have the same structure."""
        left = [Paragraph("a"), PageLink(1, "Old")]
        right = [Paragraph("a"), PageLink(1, "New")]
        assert same_structure(left, right)
        assert not same_structure(left, [Paragraph("a"), PageLink(2, "Old")])


class TestLinkTitles:
    """Test page-link token helpers."""

    def test_token_format(self):
        """Tokens use the quoted double-bracket form."""
        assert page_link_token(3, "Fóton") == "> [[page:3:Fóton]]"

    def test_replace_known_titles_only(self):
        """Only tokens whose id has a known title are rewritten."""
        text = "> [[page:1:Velho]]\ntexto\n> [[page:2:Outro]]"
        assert replace_link_titles(text, {1: "Novo"}) == "> [[page:1:Novo]]\ntexto\n> [[page:2:Outro]]"


class TestRenderInline:
    """Test inline emphasis rendering."""

    def test_bold_and_italic(self):
        """Double and single asterisks render as strong and em."""
        assert render_inline("a **b** *c*") == "a <strong>b</strong> <em>c</em>"

    def test_html_is_escaped(self):
        """Raw HTML in text is never passed through."""
        assert "<script>" not in render_inline("<script>x</script>")
