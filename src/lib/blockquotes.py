"""
Blockquote extractor

Recognizes quoted regions (possibly multi-level, possibly interrupted by
single blank lines), resolves any placeholders already embedded in them,
and replaces each region with one BLOCKQUOTE placeholder whose payload is
the finished subtree.

The extractor operates in two phases per region:
1. Collection: gather consecutive quote lines as BlockquoteLine(level, content)
2. Nesting: a stack of open levels, each holding a growing child list,
   turns the flat lines into nested BlockquoteNodes

Example:
    Input lines:
        > level1
        >> level2
        > back to 1
    Subtree:
        BlockquoteNode(nested=False, children=[
            InlineSpan("level1"),
            BlockquoteNode(nested=True, children=[InlineSpan("level2")]),
            InlineSpan("back to 1"),
        ])
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from ..models.components import BlockquotePayload, ComponentKind, ComponentPayload
from ..models.extraction import BlockquoteLine, ExtractionResult, PlaceholderFactory
from ..models.tree import BlockquoteNode, Fragment, InlineSpan, LineBreak, TreeNode
from .inline import InlineFormatter
from .log import LOG


QUOTE_LINE_PATTERN = re.compile(r'^(>+)\s*(.*)')


def quote_match(line: str) -> Optional[BlockquoteLine]:
    """
    Parse a quote line into its level and content

    Example:
        >>> quote_match(">> nested text")
        BlockquoteLine(level=2, content='nested text')
        >>> quote_match("plain") is None
        True
    """
    match = QUOTE_LINE_PATTERN.match(line)
    if not match:
        return None
    return BlockquoteLine(level=len(match.group(1)), content=match.group(2) or '')


class BlockquoteExtractor:
    """
    Stateful line scanner for quoted regions

    Handles:
    - Multi-level quotes (">", ">>", ...) with arbitrary level changes
    - Single blank lines inside a quote (kept as a line break)
    - Embedded table/code/math placeholders, resolved through the caller
    - Inline formatting of the remaining text
    """

    def __init__(
        self,
        factory: PlaceholderFactory,
        formatter: InlineFormatter,
        component_resolve: Callable[[str], Optional[TreeNode]],
        span_sanitize: Optional[Callable[[str], str]] = None,
    ) -> None:
        """
        Initialize extractor

        Args:
            factory: Placeholder generator of the current render call
            formatter: Inline formatter applied to non-placeholder text
            component_resolve: Placeholder token → tree node (None on a miss),
                               backed by the merged maps of the earlier passes
            span_sanitize: Markup cleaner applied to formatted text spans
        """
        self.factory = factory
        self.formatter = formatter
        self.component_resolve = component_resolve
        self.span_sanitize = span_sanitize or (lambda markup: markup)

        from ..config import appsettings
        self.placeholder_pattern = re.compile(appsettings.placeHolder_pattern())

    def lines_collect(self, lines: List[str], start: int) -> Tuple[List[BlockquoteLine], int]:
        """
        Collect the quoted region opening at line ``start``

        A blank line stays inside the region only when the next line is a
        quote line; it is recorded as an empty line at the current level.

        Returns:
            (region lines, index of the first line after the region)
        """
        first = quote_match(lines[start])
        if first is None:
            return [], start + 1
        region = [first]

        j = start + 1
        while j < len(lines):
            quoted = quote_match(lines[j])
            if quoted:
                region.append(quoted)
                j += 1
                continue

            if lines[j].strip() == '' and j + 1 < len(lines) and quote_match(lines[j + 1]):
                region.append(BlockquoteLine(level=region[-1].level, content=''))
                j += 1
                continue

            break

        return region, j

    def content_render(self, content: str) -> List[TreeNode]:
        """
        Render one line of quote content

        The line is split on placeholder tokens; placeholders resolve to
        their component nodes, text between them goes through the inline
        formatter.
        """
        nodes: List[TreeNode] = []
        pos = 0

        for match in self.placeholder_pattern.finditer(content):
            text = content[pos:match.start()]
            if text:
                nodes.append(InlineSpan(self.span_sanitize(self.formatter.format(text))))

            node = self.component_resolve(match.group(0))
            if node is not None:
                nodes.append(node)
            else:
                LOG(f"Unresolved placeholder in blockquote: {match.group(0)}", level=2)
            pos = match.end()

        tail = content[pos:]
        if tail:
            nodes.append(InlineSpan(self.span_sanitize(self.formatter.format(tail))))
        return nodes

    def level_close(self, stack: List[List[TreeNode]], elements: List[TreeNode]) -> None:
        """
        Pop the innermost open level and attach it to its parent

        Empty levels vanish. A level with a remaining parent becomes a nested
        quote; the outermost level becomes a root quote in ``elements``.
        """
        children = stack.pop()
        if not children:
            return
        node = BlockquoteNode(nested=bool(stack), children=children)
        if stack:
            stack[-1].append(node)
        else:
            elements.append(node)

    def lines_nest(self, lines: List[BlockquoteLine]) -> TreeNode:
        """
        Turn collected quote lines into a subtree

        Returns:
            The single top-level node, or a Fragment when the region produced
            zero or several top-level elements
        """
        elements: List[TreeNode] = []
        stack: List[List[TreeNode]] = []

        for index, line in enumerate(lines):
            while len(stack) > line.level:
                self.level_close(stack, elements)
            while len(stack) < line.level:
                stack.append([])

            target = stack[-1] if stack else elements

            if line.content.strip() == '':
                target.append(LineBreak())
                continue

            target.extend(self.content_render(line.content))

            # Break between consecutive lines of the same level only
            if index + 1 < len(lines) and lines[index + 1].level == line.level:
                target.append(LineBreak())

        while stack:
            self.level_close(stack, elements)

        if len(elements) == 1:
            return elements[0]
        return Fragment(children=elements)

    def extract(self, content: str) -> ExtractionResult:
        """
        Replace every quoted region with a BLOCKQUOTE placeholder

        Returns:
            ExtractionResult with BlockquotePayloads holding resolved subtrees
        """
        lines = content.split('\n')
        result: List[str] = []
        blockquotes: Dict[str, ComponentPayload] = {}
        i = 0

        while i < len(lines):
            if not quote_match(lines[i]):
                result.append(lines[i])
                i += 1
                continue

            region, i = self.lines_collect(lines, i)
            placeholder = self.factory.placeHolder_next(ComponentKind.BLOCKQUOTE)
            blockquotes[placeholder] = BlockquotePayload(nested=False, content=self.lines_nest(region))
            result.append(placeholder)
            LOG(f"Extracted blockquote {placeholder}: {len(region)} line(s)", level=3)

        return ExtractionResult(content='\n'.join(result), components=blockquotes)
