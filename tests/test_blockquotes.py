"""
Blockquote extractor tests

Tests region collection, level nesting, blank-line handling and resolution
of placeholders embedded in quoted lines.
"""

import pytest

from chemdown.lib.blockquotes import BlockquoteExtractor, quote_match
from chemdown.lib.inline import InlineFormatter
from chemdown.models.components import BlockquotePayload
from chemdown.models.extraction import BlockquoteLine, PlaceholderFactory
from chemdown.models.tree import BlockquoteNode, Fragment, InlineSpan, LineBreak, TableNode


def extractor_make(nodes=None):
    """Extractor whose placeholder lookup is backed by ``nodes``"""
    nodes = nodes or {}
    factory = PlaceholderFactory()
    return BlockquoteExtractor(factory, InlineFormatter(factory=factory), nodes.get)


class TestQuoteLines:
    """Test single-line parsing"""

    def test_levels(self):
        assert quote_match("> a") == BlockquoteLine(level=1, content="a")
        assert quote_match(">>> deep") == BlockquoteLine(level=3, content="deep")

    def test_empty_quote_line(self):
        assert quote_match(">") == BlockquoteLine(level=1, content="")

    def test_plain_line(self):
        assert quote_match("plain") is None


class TestNesting:
    """Test nested quote structure"""

    def test_level_change_structure(self):
        """> level1 / >> level2 / > back to 1"""
        result = extractor_make().extract("> level1\n>> level2\n> back to 1")

        assert result.content == "{{BLOCKQUOTE0}}"
        payload = result.components["{{BLOCKQUOTE0}}"]
        assert isinstance(payload, BlockquotePayload)
        assert payload.nested is False
        assert payload.content == BlockquoteNode(nested=False, children=[
            InlineSpan("level1"),
            BlockquoteNode(nested=True, children=[InlineSpan("level2")]),
            InlineSpan("back to 1"),
        ])

    def test_same_level_lines_get_breaks(self):
        result = extractor_make().extract("> one\n> two")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [InlineSpan("one"), LineBreak(), InlineSpan("two")]

    def test_only_outermost_quote_has_accent(self):
        result = extractor_make().extract("> a\n>> b\n>>> c")
        rendered = result.components["{{BLOCKQUOTE0}}"].content.html_render()
        assert rendered.count("blockquote-accent") == 1
        assert rendered.count("blockquote-nested") == 2

    def test_region_starting_deep_is_one_outer_quote(self):
        result = extractor_make().extract(">> deep\n> shallow")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert isinstance(quote, BlockquoteNode)
        assert quote.nested is False
        assert quote.children[0] == BlockquoteNode(nested=True, children=[InlineSpan("deep")])

    def test_inline_formatting_in_quotes(self):
        result = extractor_make().extract("> **bold**")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [InlineSpan('<strong class="font-medium">bold</strong>')]


class TestRegions:
    """Test region boundaries"""

    def test_single_blank_line_stays_inside(self):
        result = extractor_make().extract("> a\n\n> b")
        assert result.content == "{{BLOCKQUOTE0}}"
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [InlineSpan("a"), LineBreak(), LineBreak(), InlineSpan("b")]

    def test_two_blank_lines_end_region(self):
        result = extractor_make().extract("> a\n\n\n> b")
        assert result.content == "{{BLOCKQUOTE0}}\n\n\n{{BLOCKQUOTE1}}"

    def test_blank_then_text_ends_region(self):
        result = extractor_make().extract("> a\n\ntext")
        assert result.content == "{{BLOCKQUOTE0}}\n\ntext"

    def test_text_around_quote_passes_through(self):
        result = extractor_make().extract("before\n> q\nafter")
        assert result.content == "before\n{{BLOCKQUOTE0}}\nafter"

    def test_idempotent_on_placeholders(self):
        result = extractor_make().extract("{{BLOCKQUOTE0}}\n{{TABLE0}}")
        assert result.content == "{{BLOCKQUOTE0}}\n{{TABLE0}}"
        assert result.components == {}


class TestEmbeddedComponents:
    """Test placeholders inside quoted lines"""

    def test_placeholder_resolves_to_node(self):
        table = TableNode(headers=["a"], rows=[["1"]])
        result = extractor_make({"{{TABLE0}}": table}).extract("> {{TABLE0}}")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [table]

    def test_text_around_placeholder(self):
        table = TableNode(headers=["a"])
        result = extractor_make({"{{TABLE0}}": table}).extract("> see {{TABLE0}} here")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [InlineSpan("see "), table, InlineSpan(" here")]

    def test_unresolved_placeholder_renders_nothing(self):
        result = extractor_make().extract("> see {{TABLE9}}")
        quote = result.components["{{BLOCKQUOTE0}}"].content
        assert quote.children == [InlineSpan("see ")]

    def test_multiple_top_level_elements_make_fragment(self):
        extractor = extractor_make()
        tree = extractor.lines_nest([
            BlockquoteLine(level=0, content="loose"),
            BlockquoteLine(level=1, content="quoted"),
        ])
        assert isinstance(tree, Fragment)
        assert len(tree.children) == 2
