"""
Render tree node models

The renderer returns a tree of these nodes instead of a flat HTML string.
Each node knows how to serialize itself with html_render(); callers that
need to post-process the output (e.g. chemistry hydration) walk the tree
with walk().
"""

import html
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .components import Alignment


@dataclass
class TreeNode:
    """Base class for all render tree nodes"""

    def children_get(self) -> List['TreeNode']:
        """Direct child nodes (empty for leaves)"""
        return []

    def walk(self) -> Iterator['TreeNode']:
        """Yield this node and every descendant, depth first"""
        yield self
        for child in self.children_get():
            yield from child.walk()

    def html_render(self) -> str:
        raise NotImplementedError


@dataclass
class HtmlFragment(TreeNode):
    """
    Sanitized literal markup between two block components

    Attributes:
        html: Markup, possibly holding inline math placeholders
        inline_math: Inline math placeholder → node substituted at render time
    """
    html: str
    inline_math: Dict[str, TreeNode] = field(default_factory=dict)

    def children_get(self) -> List[TreeNode]:
        return list(self.inline_math.values())

    def html_render(self) -> str:
        markup = self.html
        for placeholder, node in self.inline_math.items():
            markup = markup.replace(placeholder, node.html_render())
        return f'<div data-slot="markdown-html">{markup}</div>'


@dataclass
class InlineSpan(TreeNode):
    """Formatted text of one blockquote line"""
    html: str

    def html_render(self) -> str:
        return f'<span>{self.html}</span>'


@dataclass
class LineBreak(TreeNode):
    """Hard line break inside a blockquote"""

    def html_render(self) -> str:
        return '<br>'


@dataclass
class Fragment(TreeNode):
    """Sequence of sibling nodes without a wrapper element"""
    children: List[TreeNode] = field(default_factory=list)

    def children_get(self) -> List[TreeNode]:
        return self.children

    def html_render(self) -> str:
        return ''.join(child.html_render() for child in self.children)


@dataclass
class BlockquoteNode(TreeNode):
    """
    Quoted region

    Only the outermost quote carries the accent bar; nested quotes are
    marked with ``nested`` and rendered without it.
    """
    nested: bool = False
    children: List[TreeNode] = field(default_factory=list)

    def children_get(self) -> List[TreeNode]:
        return self.children

    def html_render(self) -> str:
        css_class = "blockquote blockquote-nested" if self.nested else "blockquote"
        accent = "" if self.nested else '<div class="blockquote-accent"></div>'
        inner = ''.join(child.html_render() for child in self.children)
        return f'<blockquote data-slot="blockquote" class="{css_class}">{accent}{inner}</blockquote>'


@dataclass
class CodeBlockNode(TreeNode):
    """
    Syntax-highlighted code block

    Attributes:
        code: Raw code
        lines: Highlighted markup, one entry per source line
        language: Language tag from the fence, if any
        filename: Filename shown in the header, if any
        show_line_numbers: Render the line-number gutter
        theme_class: CSS class selecting the highlight theme
    """
    code: str
    lines: List[str]
    language: Optional[str] = None
    filename: Optional[str] = None
    show_line_numbers: bool = True
    theme_class: str = "codeblock-theme-vs"

    def gutterWidth_get(self) -> str:
        """Width class of the line-number gutter, by number of digits"""
        total = len(self.lines)
        if total < 10:
            return "gutter-1"
        if total < 100:
            return "gutter-2"
        if total < 1000:
            return "gutter-3"
        return "gutter-4"

    def html_render(self) -> str:
        parts = [f'<div data-slot="code-block" class="code-block {self.theme_class}"']
        if self.language:
            parts.append(f' data-language="{html.escape(self.language)}"')
        parts.append('>')

        if self.filename:
            parts.append(
                '<div data-slot="code-block-header" class="code-block-header">'
                f'<span class="code-block-filename">{html.escape(self.filename)}</span>'
                '</div>'
            )

        parts.append('<div class="code-block-body">')
        if self.show_line_numbers:
            parts.append(f'<div data-slot="code-block-line-numbers" class="line-numbers {self.gutterWidth_get()}">')
            for number in range(1, len(self.lines) + 1):
                parts.append(f'<div class="line-number">{number}</div>')
            parts.append('</div>')

        parts.append('<pre data-slot="code-block-pre"><code data-slot="code-block-code">')
        for line in self.lines:
            parts.append(f'<div class="line"><span class="line-content">{line}</span></div>')
        parts.append('</code></pre></div></div>')
        return ''.join(parts)


@dataclass
class TableNode(TreeNode):
    """
    Table with formatted header and body cells

    Rows may be shorter or longer than the header; missing alignments
    default to left.
    """
    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)
    alignments: List[Alignment] = field(default_factory=list)

    def alignClass_get(self, index: int) -> str:
        alignment = self.alignments[index] if index < len(self.alignments) else Alignment.LEFT
        return f"text-{alignment.value}"

    def html_render(self) -> str:
        parts = [
            '<div data-slot="table-container" class="table-container">',
            '<table data-slot="table">',
            '<thead data-slot="table-header"><tr data-slot="table-row">',
        ]
        for index, header in enumerate(self.headers):
            parts.append(f'<th data-slot="table-head" class="{self.alignClass_get(index)}">{header}</th>')
        parts.append('</tr></thead><tbody data-slot="table-body">')
        for row in self.rows:
            parts.append('<tr data-slot="table-row">')
            for index, cell in enumerate(row):
                parts.append(f'<td data-slot="table-cell" class="{self.alignClass_get(index)}">{cell}</td>')
            parts.append('</tr>')
        parts.append('</tbody></table></div>')
        return ''.join(parts)


@dataclass
class MathNode(TreeNode):
    """
    Math span or block

    Attributes:
        content: Original delimited source
        is_inline: Inline span vs display block
        markup: Output of the math renderer, or the escaped source
    """
    content: str
    is_inline: bool
    markup: str

    def html_render(self) -> str:
        if self.is_inline:
            return f'<span class="math math-inline">{self.markup}</span>'
        return f'<div class="math math-display">{self.markup}</div>'


@dataclass
class ChemistryNode(TreeNode):
    """
    Chemical structure rendered by the remote structure service

    The node starts unresolved; chemistry hydration fills in ``url`` or
    ``error``. A node whose ``alive`` flag was cleared is no longer updated.
    """
    content: str
    is_inline: bool = True
    url: Optional[str] = None
    error: Optional[str] = None
    alive: bool = True

    def detach(self) -> None:
        """Mark the node defunct so pending results are not applied to it"""
        self.alive = False

    def html_render(self) -> str:
        if self.error:
            return f'<span class="chemistry chemistry-error">Error: {html.escape(self.error)}</span>'
        if not self.url:
            return '<span class="chemistry chemistry-loading">Rendering structure...</span>'
        alt = html.escape(f"Chemical structure: {self.content}", quote=True)
        src = html.escape(self.url, quote=True)
        return f'<span class="chemistry"><img src="{src}" alt="{alt}" class="chemistry-image"></span>'


@dataclass
class Document(TreeNode):
    """Root of a rendered markdown document"""
    children: List[TreeNode] = field(default_factory=list)

    def children_get(self) -> List[TreeNode]:
        return self.children

    def html_render(self) -> str:
        inner = ''.join(child.html_render() for child in self.children)
        return f'<article data-slot="markdown" class="markdown">{inner}</article>'
