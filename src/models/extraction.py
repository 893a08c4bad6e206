"""
Extraction-specific data models

Type-safe structures shared by the extraction passes and their return values.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .components import ComponentKind, ComponentPayload


class PlaceholderFactory:
    """
    Per-render placeholder generator

    Keeps one monotonically increasing counter per kind, so a token is never
    reused within a render call. A fresh factory is created for every render.

    Example:
        >>> factory = PlaceholderFactory()
        >>> factory.placeHolder_next(ComponentKind.TABLE)
        '{{TABLE0}}'
        >>> factory.placeHolder_next(ComponentKind.TABLE)
        '{{TABLE1}}'
    """

    def __init__(self) -> None:
        self.counters: Dict[ComponentKind, int] = {}

    def placeHolder_next(self, kind: ComponentKind) -> str:
        """Return the next unused placeholder for ``kind``"""
        from ..config import appsettings

        index = self.counters.get(kind, 0)
        self.counters[kind] = index + 1
        return appsettings.placeHolder_make(kind.value, index)


@dataclass
class ExtractionResult:
    """
    Result of one extraction pass

    Attributes:
        content: Document text with every recognized construct replaced by
                 a placeholder (e.g. "Intro\\n{{TABLE0}}\\nOutro")
        components: Placeholder → payload for the constructs removed by
                    this pass

    Example:
        Input: "| a |\\n|---|\\n| 1 |"
        Result: ExtractionResult(
            content="{{TABLE0}}",
            components={"{{TABLE0}}": TablePayload(headers=["a"], rows=[["1"]], ...)}
        )
    """
    content: str
    components: Dict[str, ComponentPayload] = field(default_factory=dict)


@dataclass
class BlockquoteLine:
    """
    One line of a quoted region

    Attributes:
        level: Number of leading quote markers
        content: Line text after the markers and following whitespace
    """
    level: int
    content: str


@dataclass
class ProtectedSpans:
    """
    Spans replaced by placeholders and restored later in the same pass

    Used for escaped characters and inline code spans.

    Attributes:
        spans: Placeholder → replacement text, in insertion order
    """
    spans: Dict[str, str] = field(default_factory=dict)

    def spans_restore(self, content: str) -> str:
        """Replace every stored placeholder in ``content`` with its text"""
        for placeholder, text in self.spans.items():
            content = content.replace(placeholder, text)
        return content


@dataclass
class FootnoteTable:
    """
    Footnotes collected by the block transformer

    Attributes:
        definitions: Footnote id → definition text
        order: Referenced ids in first-reference order (defines numbering)
    """
    definitions: Dict[str, str] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def number_assign(self, footnote_id: str) -> int:
        """Return the 1-based number of ``footnote_id``, assigning it on first use"""
        if footnote_id not in self.order:
            self.order.append(footnote_id)
        return self.order.index(footnote_id) + 1
