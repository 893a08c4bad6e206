"""
Models package for chemdown

Contains data structures and type definitions for the rendering pipeline.
"""

from .state import ProgramState, pipeline
from .components import (
    Alignment,
    BlockquotePayload,
    CodeBlockPayload,
    ComponentKind,
    ComponentPayload,
    ComponentSpec,
    MathPayload,
    TablePayload,
)
from .extraction import BlockquoteLine, ExtractionResult, FootnoteTable, PlaceholderFactory, ProtectedSpans
from .tree import (
    BlockquoteNode,
    ChemistryNode,
    CodeBlockNode,
    Document,
    Fragment,
    HtmlFragment,
    InlineSpan,
    LineBreak,
    MathNode,
    TableNode,
    TreeNode,
)

__all__ = [
    "ProgramState",
    "pipeline",
    "Alignment",
    "BlockquotePayload",
    "CodeBlockPayload",
    "ComponentKind",
    "ComponentPayload",
    "ComponentSpec",
    "MathPayload",
    "TablePayload",
    "BlockquoteLine",
    "ExtractionResult",
    "FootnoteTable",
    "PlaceholderFactory",
    "ProtectedSpans",
    "BlockquoteNode",
    "ChemistryNode",
    "CodeBlockNode",
    "Document",
    "Fragment",
    "HtmlFragment",
    "InlineSpan",
    "LineBreak",
    "MathNode",
    "TableNode",
    "TreeNode",
]
