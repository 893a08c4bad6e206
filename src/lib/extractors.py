"""
Block extractors for tables, fenced code and math

Each extractor scans the whole document, replaces every construct it
recognizes with a unique placeholder, and returns the rewritten text with a
placeholder → payload map. The extractors are order-sensitive and run as:

    tables → fenced code → math (optional)

Table extraction never looks inside a closed code fence, so fenced code
wins over table-looking content even though tables are extracted first.

Example:
    >>> factory = PlaceholderFactory()
    >>> result = TableExtractor(factory).extract("| a | b |\\n|---|---:|\\n| 1 | 2 |")
    >>> result.content
    '{{TABLE0}}'
    >>> result.components['{{TABLE0}}'].alignments
    [<Alignment.LEFT: 'left'>, <Alignment.RIGHT: 'right'>]
"""

import re
from typing import Dict, List, Optional, Tuple

from ..config import appsettings
from ..models.components import (
    Alignment,
    CodeBlockPayload,
    ComponentKind,
    ComponentPayload,
    MathPayload,
    TablePayload,
)
from ..models.extraction import ExtractionResult, PlaceholderFactory
from .log import LOG


FENCE_LINE_PATTERN = re.compile(r'^\s*(?:>+\s*)*```')
QUOTE_PREFIX_PATTERN = re.compile(r'^(>+)\s*')
QUOTE_BODY_PATTERN = re.compile(r'^\s*>+ ?')
QUOTE_MARKERS_PATTERN = re.compile(r'(?:>+\s*)+')

CODE_FENCE_PATTERN = re.compile(
    r'```([\w+#.-]+)?(?:[ \t]+filename="([^"]+)")?[ \t]*\n([\s\S]*?)```'
)

# Order matters: display $$ before inline $, and each pattern only sees
# what the previous ones left behind
MATH_PATTERNS = [
    (re.compile(r'(?<!\\)\$\$([\s\S]+?)\$\$'), False),
    (re.compile(r'(?<!\\)\$([^$\n]+?)\$'), True),
    (re.compile(r'\\\[([\s\S]+?)\\\]'), False),
    (re.compile(r'\\\(([\s\S]+?)\\\)'), True),
]


def cells_split(line: str) -> List[str]:
    """
    Split a table line on pipes, trimming cells and dropping empty ones

    Example:
        >>> cells_split("| a | | b |")
        ['a', 'b']
    """
    return [cell.strip() for cell in line.split('|') if cell.strip() != '']


def quote_split(line: str) -> Tuple[str, str]:
    """
    Separate leading quote markers from a line

    Example:
        >>> quote_split(">> | a | b |")
        ('>>', '| a | b |')
        >>> quote_split("| a |")
        ('', '| a |')
    """
    match = QUOTE_PREFIX_PATTERN.match(line)
    if not match:
        return '', line
    return match.group(1), line[match.end():]


def alignment_parse(cell: str) -> Alignment:
    """
    Alignment of one separator cell

    ":---:" is center, "---:" is right, anything else is left.
    """
    token = cell.strip()
    if len(token) > 1 and token.startswith(':') and token.endswith(':'):
        return Alignment.CENTER
    if token.endswith(':'):
        return Alignment.RIGHT
    return Alignment.LEFT


class TableExtractor:
    """
    Line-oriented pipe-table extractor

    A table starts at line i when line i contains "|" and line i+1 contains
    both "|" and "-". Body rows continue while lines contain "|".
    """

    def __init__(self, factory: PlaceholderFactory) -> None:
        self.factory = factory

    def alignments_parse(self, separator: str, column_count: int) -> List[Alignment]:
        """
        Parse the separator line into exactly ``column_count`` alignments

        Leading and trailing pipes are ignored; missing columns are padded
        with left alignment and extra columns are dropped.

        Example:
            >>> TableExtractor(PlaceholderFactory()).alignments_parse("|:---|:---:|---:|", 3)
            [<Alignment.LEFT: 'left'>, <Alignment.CENTER: 'center'>, <Alignment.RIGHT: 'right'>]
        """
        cells = separator.strip()
        if cells.startswith('|'):
            cells = cells[1:]
        if cells.endswith('|'):
            cells = cells[:-1]

        alignments = [alignment_parse(cell) for cell in cells.split('|')]
        alignments = alignments[:column_count]
        while len(alignments) < column_count:
            alignments.append(Alignment.LEFT)
        return alignments

    def fenceEnd_find(self, lines: List[str], start: int) -> Optional[int]:
        """Index of the line closing the fence opened at ``start``, if any"""
        for index in range(start + 1, len(lines)):
            if FENCE_LINE_PATTERN.match(lines[index]):
                return index
        return None

    def table_starts(self, lines: List[str], index: int) -> bool:
        """
        Check if a table header starts at line ``index``

        Header and separator must share the same quote markers, so a table
        written inside a blockquote is recognized too.
        """
        if index + 1 >= len(lines):
            return False
        header_prefix, header = quote_split(lines[index])
        separator_prefix, separator = quote_split(lines[index + 1])
        if header_prefix != separator_prefix:
            return False
        return '|' in header and '|' in separator and '-' in separator

    def extract(self, content: str) -> ExtractionResult:
        """
        Replace every pipe table with a TABLE placeholder

        Returns:
            ExtractionResult with the rewritten text and TablePayloads
        """
        lines = content.split('\n')
        result: List[str] = []
        tables: Dict[str, ComponentPayload] = {}
        i = 0

        while i < len(lines):
            line = lines[i]

            # Pass closed fences through untouched
            if FENCE_LINE_PATTERN.match(line):
                fence_end = self.fenceEnd_find(lines, i)
                if fence_end is not None:
                    result.extend(lines[i:fence_end + 1])
                    i = fence_end + 1
                    continue

            if not self.table_starts(lines, i):
                result.append(line)
                i += 1
                continue

            prefix, header = quote_split(line)
            headers = cells_split(header)
            alignments = self.alignments_parse(quote_split(lines[i + 1])[1], len(headers))

            rows: List[List[str]] = []
            j = i + 2
            while j < len(lines):
                row_prefix, row = quote_split(lines[j])
                if row_prefix != prefix or '|' not in row:
                    break
                cells = cells_split(row)
                if cells:
                    rows.append(cells)
                j += 1

            placeholder = self.factory.placeHolder_next(ComponentKind.TABLE)
            tables[placeholder] = TablePayload(headers=headers, rows=rows, alignments=alignments)
            result.append(f"{prefix} {placeholder}" if prefix else placeholder)
            LOG(f"Extracted table {placeholder}: {len(headers)} columns, {len(rows)} rows", level=3)
            i = j

        return ExtractionResult(content='\n'.join(result), components=tables)


class CodeFenceExtractor:
    """
    Fenced code block extractor

    Recognizes ```lang filename="name" ... ``` blocks with a single,
    non-greedy document-wide match, so the first closing fence ends a block.
    Unterminated fences are left as literal text.
    """

    def __init__(self, factory: PlaceholderFactory) -> None:
        self.factory = factory

    def extract(self, content: str) -> ExtractionResult:
        """
        Replace every fenced block with a CODEBLOCK placeholder

        Example:
            Input: '```python filename="a.py"\\nprint(1)\\n```'
            Output: "{{CODEBLOCK0}}"
            Stores: CodeBlockPayload(code="print(1)", language="python", filename="a.py")
        """
        blocks: Dict[str, ComponentPayload] = {}

        def block_store(match: re.Match[str]) -> str:
            placeholder = self.factory.placeHolder_next(ComponentKind.CODEBLOCK)
            body = match.group(3)

            # A fence opened inside a blockquote carries the markers on every line
            line_start = content.rfind('\n', 0, match.start()) + 1
            if QUOTE_MARKERS_PATTERN.fullmatch(content[line_start:match.start()]):
                body = '\n'.join(QUOTE_BODY_PATTERN.sub('', row) for row in body.split('\n'))

            blocks[placeholder] = CodeBlockPayload(
                code=appsettings.placeHolder_literal(body.strip()),
                language=match.group(1),
                filename=match.group(2),
                show_line_numbers=True,
            )
            return placeholder

        processed = CODE_FENCE_PATTERN.sub(block_store, content)
        if blocks:
            LOG(f"Extracted {len(blocks)} code block(s)", level=3)
        return ExtractionResult(content=processed, components=blocks)


class MathExtractor:
    r"""
    LaTeX delimiter extractor

    Applies, in order: $$..$$, $..$ (not after a backslash), \[..\], \(..\).
    Payloads keep the original delimited text so the math renderer receives
    exactly what the author wrote. Display math becomes a MATH placeholder,
    inline math an INLINEMATH placeholder.
    """

    def __init__(self, factory: PlaceholderFactory) -> None:
        self.factory = factory

    def extract(self, content: str) -> ExtractionResult:
        """Replace every delimited math span with a placeholder"""
        spans: Dict[str, ComponentPayload] = {}
        processed = content

        for pattern, is_inline in MATH_PATTERNS:
            kind = ComponentKind.INLINEMATH if is_inline else ComponentKind.MATH

            def math_store(match: re.Match[str]) -> str:
                placeholder = self.factory.placeHolder_next(kind)
                spans[placeholder] = MathPayload(
                    content=appsettings.placeHolder_literal(match.group(0)), is_inline=is_inline
                )
                return placeholder

            processed = pattern.sub(math_store, processed)

        if spans:
            LOG(f"Extracted {len(spans)} math span(s)", level=3)
        return ExtractionResult(content=processed, components=spans)
