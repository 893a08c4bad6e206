"""
Syntax highlighting collaborator

Thin wrapper around Pygments that highlights code one line at a time, so
the code block can render its own line gutter. Highlighting never raises:
any lexer or formatter failure falls back to HTML-escaped text.

Example:
    >>> lines = code_highlight("x = 1\\ny = 2", "python")
    >>> len(lines)
    2
"""

import html
from typing import List, Optional

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

from .lexer import ChemfigLexer
from .log import LOG


def lexer_resolve(language: Optional[str], code: str = '') -> Lexer:
    """
    Pick a Pygments lexer for a code sample

    Args:
        language: Fence language tag, may be None or unknown
        code: Sample used for guessing when the language is missing

    Returns:
        The named lexer, a guessed one, or TextLexer
    """
    if language and language.lower() in ChemfigLexer.aliases:
        return ChemfigLexer()

    if language:
        try:
            return get_lexer_by_name(language.lower())
        except ClassNotFound:
            LOG(f"Unknown language '{language}', guessing lexer", level=2)

    if code.strip():
        try:
            return guess_lexer(code)
        except ClassNotFound:
            pass

    return TextLexer()


def line_highlight(line: str, language: Optional[str] = None, style: str = "vs") -> str:
    """
    Highlight a single line of code as inline-styled markup

    Args:
        line: One source line, without its newline
        language: Fence language tag
        style: Pygments style name

    Returns:
        Highlighted HTML. An empty line yields a single space so the line
        keeps its height.
    """
    if line == '':
        return ' '

    try:
        formatter = HtmlFormatter(nowrap=True, noclasses=True, style=style)
        markup = highlight(line, lexer_resolve(language, line), formatter)
        return markup.rstrip('\n')
    except Exception as e:
        LOG(f"Highlighting failed, escaping line: {e}", level=2)
        return html.escape(line)


def code_highlight(code: str, language: Optional[str] = None, style: str = "vs") -> List[str]:
    """
    Highlight a whole code block, line by line

    The lexer is resolved once for the whole block (guessing works better
    on more text) and reused for every line.
    """
    lines = code.split('\n')

    try:
        lexer = lexer_resolve(language, code)
        formatter = HtmlFormatter(nowrap=True, noclasses=True, style=style)
    except Exception as e:
        LOG(f"Highlighter setup failed, escaping block: {e}", level=2)
        return [html.escape(line) if line else ' ' for line in lines]

    highlighted: List[str] = []
    for line in lines:
        if line == '':
            highlighted.append(' ')
            continue
        try:
            highlighted.append(highlight(line, lexer, formatter).rstrip('\n'))
        except Exception as e:
            LOG(f"Highlighting failed, escaping line: {e}", level=2)
            highlighted.append(html.escape(line))
    return highlighted
