"""
Component payload and specification models

Defines the structured payloads stored behind extraction placeholders and
the specification records used by the component registry to turn a payload
back into a render tree node.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .tree import TreeNode


class ComponentKind(Enum):
    """
    Placeholder kinds

    The value is the literal word used inside a placeholder token, so
    ComponentKind.TABLE produces tokens like {{TABLE0}}.
    """
    TABLE = "TABLE"              # pipe tables
    CODEBLOCK = "CODEBLOCK"      # ``` fenced code
    MATH = "MATH"                # display math ($$..$$, \[..\])
    INLINEMATH = "INLINEMATH"    # inline math ($..$, \(..\))
    BLOCKQUOTE = "BLOCKQUOTE"    # > quoted regions
    ESCAPED = "ESCAPED"          # backslash-escaped punctuation
    CODESPAN = "CODESPAN"        # `inline code`


class Alignment(Enum):
    """Column alignment derived from a table separator line"""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass
class BlockquotePayload:
    """
    Quoted region, already resolved to a subtree at extraction time

    Attributes:
        nested: True for quotes that live inside another quote
        content: Resolved subtree (a BlockquoteNode or a Fragment of nodes)
    """
    nested: bool
    content: 'TreeNode'


@dataclass
class CodeBlockPayload:
    """
    Fenced code block

    Attributes:
        code: Block body with surrounding whitespace trimmed
        language: Language tag as written after the opening fence
        filename: Value of a filename="..." attribute on the fence line
        show_line_numbers: Render a line-number gutter
    """
    code: str
    language: Optional[str] = None
    filename: Optional[str] = None
    show_line_numbers: bool = True


@dataclass
class TablePayload:
    """
    Pipe table

    ``alignments[i]`` belongs to ``headers[i]``. Rows are not guaranteed to
    have the same number of cells as the header.
    """
    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)
    alignments: List[Alignment] = field(default_factory=list)

    def alignment_get(self, index: int) -> Alignment:
        """Alignment for column ``index``, left when the column has none"""
        if 0 <= index < len(self.alignments):
            return self.alignments[index]
        return Alignment.LEFT


@dataclass
class MathPayload:
    """
    Math span or block

    Attributes:
        content: Original text including its delimiters (e.g. "$$x^2$$")
        is_inline: True for $..$ and \\(..\\) spans
    """
    content: str
    is_inline: bool


ComponentPayload = Union[BlockquotePayload, CodeBlockPayload, TablePayload, MathPayload]


@dataclass
class ComponentSpec:
    """
    Specification for a resolvable component kind

    Attributes:
        kind: Placeholder kind handled by this spec
        description: Human-readable description
        handler: Instantiation function (payload, context) -> TreeNode
        is_block: Whether placeholders of this kind are split out of the
                  literal markup during tree assembly
    """
    kind: ComponentKind
    description: str
    handler: Callable
    is_block: bool = True


# Kinds that are restored inside the block transformer and never reach the resolver
TRANSIENT_KINDS: Set[ComponentKind] = {
    ComponentKind.ESCAPED,
    ComponentKind.CODESPAN,
}
