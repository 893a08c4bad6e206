"""
Resolver/renderer: markdown source → render tree

Runs the extraction passes, the block transformer and the sanitizer, then
splits the sanitized markup on block placeholders and instantiates the
components they stand for. The result is a Document whose html_render()
produces the final HTML.

Pipeline:
    tables → fenced code → math (optional) → blockquotes
        → block transformer → sanitizer → tree assembly

Example:
    >>> document = render("# Hello\\n\\n| a |\\n|---|\\n| 1 |")
    >>> [type(node).__name__ for node in document.children]
    ['HtmlFragment', 'TableNode']
"""

import html
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..config import appsettings
from ..models.components import ComponentPayload
from ..models.extraction import PlaceholderFactory
from ..models.tree import Document, HtmlFragment, TreeNode
from .blockquotes import BlockquoteExtractor
from .components import REGISTRY, ComponentContext, ComponentRegistry, MathComponent
from .extractors import CodeFenceExtractor, MathExtractor, TableExtractor
from .inline import InlineFormatter
from .log import LOG
from .sanitizer import html_sanitize, markup_strip
from .theme import theme_resolve
from .transformer import BlockTransformer


# Markup without text that still shows something
VISIBLE_TAG_PATTERN = re.compile(r'<(?:img|hr)\b')


def markup_trust(markup: str) -> str:
    """Identity cleaner used when rendering trusted content"""
    return markup


@dataclass
class RenderOptions:
    """
    Options of one render call

    Attributes:
        theme: Highlight theme name for code blocks (None = configured default)
        math_component: Math renderer (content, is_inline) -> markup
        math_extract: Force math extraction on or off; by default it runs
                      only when a math renderer is given
        current_host: Hostname used to detect external links
        sanitize: Clean literal markup with the sanitizer (False = trusted)
    """
    theme: Optional[str] = None
    math_component: Optional[MathComponent] = None
    math_extract: Optional[bool] = None
    current_host: str = ''
    sanitize: bool = field(default_factory=lambda: appsettings.sanitize_default)

    def mathExtract_enabled(self) -> bool:
        """Check if the math extraction pass runs"""
        if self.math_extract is not None:
            return self.math_extract
        return self.math_component is not None


class Renderer:
    """
    Markdown renderer

    A Renderer holds options and the component registry; every call to
    render() uses a fresh placeholder factory and component map, so a
    Renderer can be reused across documents.
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        registry: Optional[ComponentRegistry] = None,
    ) -> None:
        self.options = options or RenderOptions()
        self.registry = registry or REGISTRY
        inline_kinds = self.registry.inlineKinds_list()
        self.block_pattern = re.compile(appsettings.placeHolder_pattern(exclude=inline_kinds))
        self.inline_pattern = re.compile(
            re.escape(appsettings.placeholder_prefix)
            + "(" + "|".join(inline_kinds) + r")(\d+)"
            + re.escape(appsettings.placeholder_suffix)
        )

    def sanitizer_get(self) -> Callable[[str], str]:
        return html_sanitize if self.options.sanitize else markup_trust

    def fragment_build(
        self,
        markup: str,
        resolve: Callable[[str], Optional[TreeNode]],
    ) -> Optional[HtmlFragment]:
        """
        Wrap literal markup between block components

        Inline math placeholders are bound to their nodes. Fragments with
        nothing to show are dropped.
        """
        inline_math: Dict[str, TreeNode] = {}
        for match in self.inline_pattern.finditer(markup):
            node = resolve(match.group(0))
            if node is None:
                LOG(f"Unresolved inline placeholder: {match.group(0)}", level=2)
                continue
            inline_math[match.group(0)] = node

        if not inline_math and not markup_strip(markup).strip() and not VISIBLE_TAG_PATTERN.search(markup):
            return None
        return HtmlFragment(html=markup, inline_math=inline_math)

    def tree_assemble(
        self,
        markup: str,
        resolve: Callable[[str], Optional[TreeNode]],
    ) -> List[TreeNode]:
        """
        Split sanitized markup on block placeholders into tree nodes

        Returns:
            Document children in source order. A placeholder without a
            component renders as nothing.
        """
        children: List[TreeNode] = []
        pos = 0

        for match in self.block_pattern.finditer(markup):
            fragment = self.fragment_build(markup[pos:match.start()], resolve)
            if fragment:
                children.append(fragment)

            node = resolve(match.group(0))
            if node is not None:
                children.append(node)
            else:
                LOG(f"Unresolved placeholder: {match.group(0)}", level=2)
            pos = match.end()

        fragment = self.fragment_build(markup[pos:], resolve)
        if fragment:
            children.append(fragment)
        return children

    def render(self, content: str) -> Optional[Document]:
        """
        Render markdown source into a Document

        Args:
            content: Markdown source

        Returns:
            Document, or None for empty/whitespace-only input

        Raises:
            Whatever a pass raises; use the module-level render() for a
            call that never raises.
        """
        if not content or not content.strip():
            return None

        options = self.options
        factory = PlaceholderFactory()
        sanitize = self.sanitizer_get()
        context = ComponentContext(
            formatter=InlineFormatter(current_host=options.current_host, factory=factory),
            sanitize=sanitize,
            theme=theme_resolve(options.theme),
            math_component=options.math_component,
        )

        components: Dict[str, ComponentPayload] = {}

        def component_resolve(placeholder: str) -> Optional[TreeNode]:
            parsed = appsettings.placeHolder_parse(placeholder)
            payload = components.get(placeholder)
            if parsed is None or payload is None:
                return None
            return self.registry.instantiate(parsed[0], payload, context)

        # Author text shaped like a placeholder must never resolve
        content = appsettings.placeHolder_neutralize(content)

        tables = TableExtractor(factory).extract(content)
        components.update(tables.components)

        code = CodeFenceExtractor(factory).extract(tables.content)
        components.update(code.components)
        processed = code.content

        if options.mathExtract_enabled():
            math = MathExtractor(factory).extract(processed)
            components.update(math.components)
            processed = math.content

        quotes = BlockquoteExtractor(
            factory,
            InlineFormatter(current_host=options.current_host, factory=factory),
            component_resolve,
            span_sanitize=sanitize,
        ).extract(processed)
        components.update(quotes.components)

        transformer = BlockTransformer(
            InlineFormatter(current_host=options.current_host, factory=factory, block_images=True),
            factory,
            self.registry,
        )
        markup = sanitize(transformer.transform(quotes.content))

        LOG(f"Resolving {len(components)} component(s)", level=2)
        return Document(children=self.tree_assemble(markup, component_resolve))


def source_fallback(content: str) -> Document:
    """Document showing the escaped source, used when rendering failed"""
    return Document(children=[
        HtmlFragment(html=f'<p class="paragraph">{html.escape(content)}</p>')
    ])


def render(content: str, options: Optional[RenderOptions] = None) -> Optional[Document]:
    """
    Render markdown source into a Document; never raises

    Args:
        content: Markdown source
        options: Render options (defaults from configuration)

    Returns:
        Document, or None for empty/whitespace-only input. If rendering
        fails unexpectedly the Document holds the escaped source.

    Example:
        >>> render("") is None
        True
        >>> render("**hi**").html_render()
        '<article data-slot="markdown" class="markdown"><div data-slot="markdown-html"><p class="paragraph"><strong class="font-medium">hi</strong></p></div></article>'
    """
    try:
        return Renderer(options).render(content)
    except Exception as e:
        LOG(f"Rendering failed, showing source: {e}", level=1)
        if not isinstance(content, str):
            content = str(content)
        return source_fallback(content)
