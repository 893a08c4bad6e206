"""
Component implementations for chemdown

Each component turns an extracted payload back into a render tree node.
Uses ComponentSpec for metadata and dispatch, the same way for every
placeholder kind that reaches the resolver.
"""

import html
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..models.components import (
    BlockquotePayload,
    CodeBlockPayload,
    ComponentKind,
    ComponentPayload,
    ComponentSpec,
    MathPayload,
    TablePayload,
    TRANSIENT_KINDS,
)
from ..models.tree import ChemistryNode, CodeBlockNode, MathNode, TableNode, TreeNode
from .highlight import code_highlight
from .inline import InlineFormatter
from .log import LOG
from .theme import Theme


MathComponent = Callable[[str, bool], str]

CHEMFIG_PATTERN = re.compile(r'\\chemfig\s*\{([\s\S]*)\}')

MATH_DELIMITERS = [
    ('$$', '$$'),
    ('\\[', '\\]'),
    ('\\(', '\\)'),
    ('$', '$'),
]


def delimiters_strip(content: str) -> str:
    r"""
    Remove the math delimiters from an extracted span

    Example:
        >>> delimiters_strip(r"$$\chemfig{H-O-H}$$")
        '\\chemfig{H-O-H}'
    """
    for opening, closing in MATH_DELIMITERS:
        if content.startswith(opening) and content.endswith(closing) and len(content) >= len(opening) + len(closing):
            return content[len(opening):len(content) - len(closing)]
    return content


def chemfig_match(content: str) -> Optional[str]:
    r"""
    Structure formula of a math span consisting of one \chemfig command

    Returns:
        The formula inside \chemfig{...}, or None for ordinary math
    """
    match = CHEMFIG_PATTERN.fullmatch(delimiters_strip(content).strip())
    return match.group(1).strip() if match else None


@dataclass
class ComponentContext:
    """
    Per-render collaborators handed to component handlers

    Attributes:
        formatter: Inline formatter for table cells
        sanitize: Markup cleaner (identity when rendering trusted output)
        theme: Highlight theme for code blocks
        math_component: Optional math renderer (content, is_inline) -> markup
    """
    formatter: InlineFormatter
    sanitize: Callable[[str], str]
    theme: Theme
    math_component: Optional[MathComponent] = None


class ComponentRegistry:
    """
    Registry of component specifications and handlers

    Maps placeholder kinds to ComponentSpec objects containing metadata
    and instantiation handlers.
    """

    def __init__(self) -> None:
        """Initialize the registry and register all built-in components"""
        self.specs: Dict[ComponentKind, ComponentSpec] = {}
        self.blockComponents_register()
        self.mathComponents_register()

    def register(self, spec: ComponentSpec) -> None:
        """Register a component specification"""
        self.specs[spec.kind] = spec

    def spec_get(self, kind: str) -> Optional[ComponentSpec]:
        """
        Get the component spec for a placeholder kind

        Args:
            kind: Upper-case kind word from a placeholder (e.g. "TABLE")

        Returns:
            ComponentSpec or None if the kind is not resolvable
        """
        try:
            return self.specs.get(ComponentKind(kind))
        except ValueError:
            return None

    def inlineKinds_list(self, transient: bool = False) -> List[str]:
        """
        Placeholder kinds that must not split literal markup into blocks

        Args:
            transient: Also include the kinds restored inside the block
                       transformer (escapes, code spans)

        Returns:
            Sorted kind words, ready for placeHolder_pattern(exclude=...)
        """
        kinds = {spec.kind for spec in self.specs.values() if not spec.is_block}
        if transient:
            kinds |= TRANSIENT_KINDS
        return sorted(kind.value for kind in kinds)

    def instantiate(self, kind: str, payload: ComponentPayload, context: ComponentContext) -> Optional[TreeNode]:
        """
        Turn a payload into its tree node

        Returns:
            The node, or None when no handler exists for ``kind``
        """
        spec = self.spec_get(kind)
        if spec is None:
            LOG(f"No component registered for kind '{kind}'", level=2)
            return None
        return spec.handler(payload, context)

    def blockComponents_register(self) -> None:
        """Register table, code block and blockquote components"""

        def table_handler(payload: TablePayload, context: ComponentContext) -> TreeNode:
            def cell_render(cell: str) -> str:
                return context.sanitize(context.formatter.format(cell))

            return TableNode(
                headers=[cell_render(header) for header in payload.headers],
                rows=[[cell_render(cell) for cell in row] for row in payload.rows],
                alignments=[payload.alignment_get(i) for i in range(len(payload.headers))],
            )

        self.register(ComponentSpec(
            kind=ComponentKind.TABLE,
            description='Pipe table with per-column alignment',
            handler=table_handler,
        ))

        def codeblock_handler(payload: CodeBlockPayload, context: ComponentContext) -> TreeNode:
            lines = code_highlight(
                payload.code,
                payload.language,
                style=context.theme.pygmentsStyle_get(),
            )
            return CodeBlockNode(
                code=payload.code,
                lines=lines,
                language=payload.language,
                filename=payload.filename,
                show_line_numbers=payload.show_line_numbers,
                theme_class=context.theme.cssClass_get(),
            )

        self.register(ComponentSpec(
            kind=ComponentKind.CODEBLOCK,
            description='Fenced code block with line-by-line highlighting',
            handler=codeblock_handler,
        ))

        def blockquote_handler(payload: BlockquotePayload, context: ComponentContext) -> TreeNode:
            # Resolved at extraction time
            return payload.content

        self.register(ComponentSpec(
            kind=ComponentKind.BLOCKQUOTE,
            description='Quoted region, possibly nested',
            handler=blockquote_handler,
        ))

    def mathComponents_register(self) -> None:
        """Register display and inline math components"""

        def math_handler(payload: MathPayload, context: ComponentContext) -> TreeNode:
            formula = chemfig_match(payload.content)
            if formula is not None:
                return ChemistryNode(content=formula, is_inline=payload.is_inline)

            literal = html.escape(payload.content)
            if context.math_component is None:
                return MathNode(content=payload.content, is_inline=payload.is_inline, markup=literal)

            try:
                markup = context.math_component(payload.content, payload.is_inline)
            except Exception as e:
                LOG(f"Math renderer failed, showing source: {e}", level=1)
                markup = literal
            return MathNode(content=payload.content, is_inline=payload.is_inline, markup=markup)

        self.register(ComponentSpec(
            kind=ComponentKind.MATH,
            description='Display math ($$..$$, \\[..\\])',
            handler=math_handler,
        ))

        self.register(ComponentSpec(
            kind=ComponentKind.INLINEMATH,
            description='Inline math ($..$, \\(..\\)), hydrated inside literal markup',
            handler=math_handler,
            is_block=False,
        ))


# Global registry instance
REGISTRY = ComponentRegistry()
