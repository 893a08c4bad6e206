"""
Block transformer

Turns the placeholder-bearing document (tables, code, math and quotes
already extracted) into one HTML string. Processing order:

1. ATX headers, deepest marker first
2. Backslash escapes protected as ESCAPED placeholders
3. Footnote definitions collected, references numbered
4. Inline code spans protected as CODESPAN placeholders
5. Inline rules, horizontal rules and hard breaks
6. List aggregation
7. Paragraph wrapping
8. Code spans restored, footnotes section appended, escapes restored

Block placeholders pass through untouched; they are resolved into tree
nodes by the renderer after sanitization.

Example:
    >>> BlockTransformer().transform("# Title\\n\\nSome *text*")
    '<h1 class="heading heading-1">Title</h1>\\n<p class="paragraph">Some <em class="italic">text</em></p>'
"""

import html
import re
from typing import List, Optional

from ..config import appsettings
from ..models.extraction import FootnoteTable, PlaceholderFactory, ProtectedSpans
from .components import REGISTRY, ComponentRegistry
from .inline import InlineFormatter
from .log import LOG


HEADER_PATTERNS = [
    (level, re.compile(rf'^{"#" * level} (.*)$', re.MULTILINE))
    for level in range(6, 0, -1)
]

FOOTNOTE_DEF_PATTERN = re.compile(r'^\[\^([^\]]+)\]:\s*(.+)$', re.MULTILINE)
FOOTNOTE_REF_PATTERN = re.compile(r'\[\^([^\]]+)\]')

HR_PATTERN = re.compile(r'^---$', re.MULTILINE)
HARD_BREAK_PATTERN = re.compile(r' {2}$', re.MULTILINE)

TASK_UNCHECKED_PATTERN = re.compile(r'^\s*[-*+]\s+\[\s*\]\s+(.*)$')
TASK_CHECKED_PATTERN = re.compile(r'^\s*[-*+]\s+\[[xX]\]\s+(.*)$')
UNORDERED_PATTERN = re.compile(r'^\s*[-*+]\s+(.*)$')
ORDERED_PATTERN = re.compile(r'^\s*\d+\.\s+(.*)$')

# Lines opening with one of these tags are never wrapped in a paragraph
BLOCK_TAG_PATTERN = re.compile(r'^</?(?:h[1-6]|ul|ol|li|hr|p|div|pre|table|blockquote)\b')


class BlockTransformer:
    """
    Block-level markdown transformer

    Handles:
    - Headers (# to ######)
    - Footnotes ([^id] references, [^id]: definitions)
    - Unordered, ordered and task lists
    - Horizontal rules (---) and hard breaks (two trailing spaces)
    - Paragraphs, leaving block placeholders bare
    """

    def __init__(
        self,
        formatter: Optional[InlineFormatter] = None,
        factory: Optional[PlaceholderFactory] = None,
        registry: Optional[ComponentRegistry] = None,
    ) -> None:
        """
        Initialize transformer

        Args:
            formatter: Inline formatter providing the inline rules
            factory: Placeholder generator of the current render call
            registry: Component registry deciding which placeholders are blocks
        """
        self.factory = factory or PlaceholderFactory()
        self.formatter = formatter or InlineFormatter(factory=self.factory, block_images=True)

        registry = registry or REGISTRY
        self.block_pattern = re.compile(
            appsettings.placeHolder_pattern(exclude=registry.inlineKinds_list(transient=True))
        )

    def headers_process(self, content: str) -> str:
        """Convert ATX headers, ###### first so # never eats deeper markers"""
        for level, pattern in HEADER_PATTERNS:
            content = pattern.sub(
                rf'<h{level} class="heading heading-{level}">\1</h{level}>', content
            )
        return content

    def footnotes_process(self, content: str, footnotes: FootnoteTable) -> str:
        """
        Collect footnote definitions and number their references

        References to undefined ids are left as written.

        Example:
            Input: "b[^b] a[^a] b[^b]\\n[^a]: A\\n[^b]: B"
            Numbers: b → 1, a → 2, the second b reuses 1
        """
        def definition_store(match: re.Match[str]) -> str:
            footnotes.definitions[match.group(1)] = match.group(2).strip()
            return ''

        content = FOOTNOTE_DEF_PATTERN.sub(definition_store, content)

        def reference_render(match: re.Match[str]) -> str:
            footnote_id = match.group(1)
            if footnote_id not in footnotes.definitions:
                return match.group(0)
            number = footnotes.number_assign(footnote_id)
            anchor = html.escape(footnote_id, quote=True)
            return (
                f'<sup><a href="#footnote-{anchor}" id="footnote-ref-{anchor}" '
                f'class="footnote-ref">{number}</a></sup>'
            )

        return FOOTNOTE_REF_PATTERN.sub(reference_render, content)

    def lists_process(self, content: str) -> str:
        """
        Aggregate consecutive list item lines into <ul>/<ol> blocks

        A change of list type, or any non-item line, closes the open list.
        """
        result: List[str] = []
        list_type: Optional[str] = None
        items: List[str] = []

        def list_flush() -> None:
            nonlocal list_type, items
            if list_type and items:
                css_class = "list list-decimal" if list_type == 'ol' else "list list-disc"
                result.append(f'<{list_type} class="{css_class}">')
                result.extend(items)
                result.append(f'</{list_type}>')
            list_type = None
            items = []

        def list_enter(kind: str) -> None:
            nonlocal list_type
            if list_type != kind:
                list_flush()
                list_type = kind

        for line in content.split('\n'):
            unchecked = TASK_UNCHECKED_PATTERN.match(line)
            checked = TASK_CHECKED_PATTERN.match(line)
            unordered = UNORDERED_PATTERN.match(line)
            ordered = ORDERED_PATTERN.match(line)

            if unchecked:
                list_enter('ul')
                items.append(
                    '<li class="list-item task-item"><span class="task-checkbox" '
                    f'aria-label="Unchecked" role="img">☐</span> {unchecked.group(1)}</li>'
                )
            elif checked:
                list_enter('ul')
                items.append(
                    '<li class="list-item task-item"><span class="task-checkbox task-checked" '
                    f'aria-label="Checked" role="img">☑</span> {checked.group(1)}</li>'
                )
            elif unordered:
                list_enter('ul')
                items.append(f'<li class="list-item">{unordered.group(1)}</li>')
            elif ordered:
                list_enter('ol')
                items.append(f'<li class="list-item">{ordered.group(1)}</li>')
            else:
                list_flush()
                result.append(line)

        list_flush()
        return '\n'.join(result)

    def lines_split(self, line: str) -> List[str]:
        """Put every block placeholder of a line on a line of its own"""
        pieces: List[str] = []
        pos = 0
        for match in self.block_pattern.finditer(line):
            pieces.append(line[pos:match.start()])
            pieces.append(match.group(0))
            pos = match.end()
        pieces.append(line[pos:])
        return [piece.strip() for piece in pieces if piece.strip()]

    def paragraphs_process(self, content: str) -> str:
        """
        Wrap runs of text lines in paragraphs

        A blank line ends a paragraph. Lines that start with a block tag or
        consist of a single block placeholder are emitted bare.
        """
        result: List[str] = []
        paragraph: List[str] = []

        def paragraph_flush() -> None:
            text = '\n'.join(paragraph).strip()
            if text:
                result.append(f'<p class="paragraph">{text}</p>')
            paragraph.clear()

        for raw in content.split('\n'):
            if raw.strip() == '':
                paragraph_flush()
                continue

            for line in self.lines_split(raw):
                if BLOCK_TAG_PATTERN.match(line) or self.block_pattern.fullmatch(line):
                    paragraph_flush()
                    result.append(line)
                else:
                    paragraph.append(line)

        paragraph_flush()
        return '\n'.join(result)

    def footnotes_render(self, footnotes: FootnoteTable) -> str:
        """Footnotes section, definitions in first-reference order"""
        if not footnotes.order:
            return ''

        items: List[str] = []
        for footnote_id in footnotes.order:
            codespans = ProtectedSpans()
            definition = self.formatter.codespans_protect(footnotes.definitions[footnote_id], codespans)
            definition = codespans.spans_restore(self.formatter.rules_apply(definition))
            anchor = html.escape(footnote_id, quote=True)
            items.append(f'<li id="footnote-{anchor}" class="footnote">{definition}</li>')

        return (
            '<div class="footnotes"><h4 class="footnotes-title">Footnotes</h4>'
            f'<ol class="footnotes-list">{"".join(items)}</ol></div>'
        )

    def transform(self, content: str) -> str:
        """
        Transform a placeholder-bearing document into HTML

        Args:
            content: Document text after the extraction passes

        Returns:
            HTML with block placeholders left in place
        """
        escapes = ProtectedSpans()
        codespans = ProtectedSpans()
        footnotes = FootnoteTable()

        processed = self.headers_process(content)
        processed = self.formatter.escapes_protect(processed, escapes)
        processed = self.footnotes_process(processed, footnotes)
        processed = self.formatter.codespans_protect(processed, codespans)
        processed = self.formatter.rules_apply(processed)
        processed = HR_PATTERN.sub('<hr class="divider" />', processed)
        processed = HARD_BREAK_PATTERN.sub('<br />', processed)
        processed = self.lists_process(processed)
        processed = self.paragraphs_process(processed)
        processed = codespans.spans_restore(processed)
        processed += self.footnotes_render(footnotes)
        processed = escapes.spans_restore(processed)

        if footnotes.order:
            LOG(f"Numbered {len(footnotes.order)} footnote(s)", level=3)
        return processed
