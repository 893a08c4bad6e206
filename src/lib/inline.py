"""
Inline formatter

Converts a single fragment of markdown-like text into markup. Knows nothing
about block structure: headers, lists and paragraphs are handled by the
block transformer, which reuses the protection helpers defined here.

Precedence (earlier rules are never re-entered by later ones):
    escaped characters → inline code → bold → italic → strikethrough
    → image → link → keyboard keys

Example:
    >>> InlineFormatter().format("**bold** and `x < y`")
    '<strong class="font-medium">bold</strong> and <code class="code-span">x &lt; y</code>'
"""

import html
import re
from typing import Optional
from urllib.parse import urlsplit

from ..config import appsettings
from ..models.components import ComponentKind
from ..models.extraction import PlaceholderFactory, ProtectedSpans


ESCAPE_PATTERN = re.compile(r'\\([\\`*_{}\[\]()#+\-.!~|$])')
CODESPAN_PATTERN = re.compile(r'`([^`]+)`')

BOLD_PATTERN = re.compile(r'\*\*(.+?)\*\*')
ITALIC_STAR_PATTERN = re.compile(r'\*(?!\s)(.+?)(?<!\s)\*')
ITALIC_UNDERSCORE_PATTERN = re.compile(r'(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)')
STRIKE_PATTERN = re.compile(r'~~(.+?)~~')
IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\(([^)]+)\)')
LINK_PATTERN = re.compile(r'\[([^\]]+)\]\(([^)]+)\)')
KBD_PATTERN = re.compile(r'\[\[([^\]]+)\]\]')

# Braces are restored as character references so an escaped "\{\{" can
# never be read back as a placeholder delimiter
ESCAPE_RESTORE = {
    '{': '&#123;',
    '}': '&#125;',
}


def url_isExternal(url: str, current_host: str = '') -> bool:
    """
    Check if a URL points to a different host

    Only absolute http(s) URLs can be external. With no current host every
    absolute URL counts as external. A leading "www." is ignored on both
    sides.

    Args:
        url: Link target
        current_host: Hostname the document is served from

    Returns:
        True if the link should open in a new tab

    Example:
        >>> url_isExternal("https://www.example.com/a", "example.com")
        False
        >>> url_isExternal("/relative", "example.com")
        False
    """
    if not url.startswith(('http://', 'https://')):
        return False

    try:
        url_host = (urlsplit(url).hostname or '').lower()
    except ValueError:
        return False

    if not current_host:
        return True

    def host_normalize(host: str) -> str:
        return re.sub(r'^www\.', '', host.lower())

    return host_normalize(url_host) != host_normalize(current_host)


class InlineFormatter:
    """
    Inline markdown formatter

    Handles:
    - Backslash escapes (\\* renders a literal *)
    - Inline code spans (contents HTML-escaped, never reformatted)
    - **bold**, *italic*, _italic_, ~~strikethrough~~
    - ![images](src) and [links](href) with external-link detection
    - [[Key]] keyboard markup
    """

    def __init__(
        self,
        current_host: str = '',
        factory: Optional[PlaceholderFactory] = None,
        block_images: bool = False,
    ) -> None:
        """
        Initialize formatter

        Args:
            current_host: Hostname used to tell external links from local ones
            factory: Placeholder generator shared with the current render call
            block_images: Render images as blocks (document flow) rather than
                          inline (blockquote lines)
        """
        self.current_host = current_host
        self.factory = factory or PlaceholderFactory()
        self.block_images = block_images

    def escapes_protect(self, content: str, protected: ProtectedSpans) -> str:
        r"""
        Replace backslash-escaped punctuation with placeholders

        Example:
            Input: r"\*not bold\*"
            Output: "{{ESCAPED0}}not bold{{ESCAPED1}}"
            Stores: {"{{ESCAPED0}}": "*", "{{ESCAPED1}}": "*"}
        """
        def escape_store(match: re.Match[str]) -> str:
            placeholder = self.factory.placeHolder_next(ComponentKind.ESCAPED)
            char = match.group(1)
            protected.spans[placeholder] = ESCAPE_RESTORE.get(char, char)
            return placeholder

        return ESCAPE_PATTERN.sub(escape_store, content)

    def codespans_protect(self, content: str, protected: ProtectedSpans) -> str:
        """
        Replace `code` spans with placeholders holding their final markup

        Code span contents are HTML-escaped here, so later rules never see
        the original characters.
        """
        def codespan_store(match: re.Match[str]) -> str:
            placeholder = self.factory.placeHolder_next(ComponentKind.CODESPAN)
            # The span lands back in document markup, so tokens stay encoded
            code = html.escape(appsettings.placeHolder_literal(match.group(1)), quote=False)
            protected.spans[placeholder] = (
                f'<code class="code-span">{appsettings.placeHolder_neutralize(code)}</code>'
            )
            return placeholder

        return CODESPAN_PATTERN.sub(codespan_store, content)

    def link_render(self, match: re.Match[str]) -> str:
        """Render a [text](url) match, opening external targets in a new tab"""
        text, url = match.group(1), match.group(2).strip()
        target = ''
        if url_isExternal(url, self.current_host):
            target = ' target="_blank" rel="noopener noreferrer"'
        return f'<a href="{html.escape(url, quote=True)}"{target} class="markdown-link">{text}</a>'

    def image_render(self, match: re.Match[str]) -> str:
        """Render an ![alt](src) match"""
        alt, src = match.group(1), match.group(2).strip()
        css_class = "markdown-image block" if self.block_images else "markdown-image inline"
        return (
            f'<img src="{html.escape(src, quote=True)}" '
            f'alt="{html.escape(alt, quote=True)}" class="{css_class}" />'
        )

    def rules_apply(self, content: str) -> str:
        """
        Apply the emphasis, media, link and keyboard rules in precedence order

        Expects escapes and code spans to be protected already.
        """
        content = BOLD_PATTERN.sub(r'<strong class="font-medium">\1</strong>', content)
        content = ITALIC_STAR_PATTERN.sub(r'<em class="italic">\1</em>', content)
        content = ITALIC_UNDERSCORE_PATTERN.sub(r'<em class="italic">\1</em>', content)
        content = STRIKE_PATTERN.sub(r'<del class="line-through">\1</del>', content)
        content = IMAGE_PATTERN.sub(self.image_render, content)
        content = LINK_PATTERN.sub(self.link_render, content)
        content = KBD_PATTERN.sub(r'<kbd class="kbd">\1</kbd>', content)
        return content

    def format(self, content: str) -> str:
        r"""
        Format one fragment of inline markdown

        Args:
            content: Text without block structure (one line or cell)

        Returns:
            Markup fragment. Malformed spans are left as literal text.

        Example:
            >>> InlineFormatter().format(r"\*not bold\*")
            '*not bold*'
        """
        escapes = ProtectedSpans()
        codespans = ProtectedSpans()

        processed = self.escapes_protect(content, escapes)
        processed = self.codespans_protect(processed, codespans)
        processed = self.rules_apply(processed)
        processed = codespans.spans_restore(processed)
        processed = escapes.spans_restore(processed)
        return processed
