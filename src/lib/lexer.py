"""
Custom Pygments lexer for chemfig structure syntax

Provides syntax highlighting for \\chemfig{...} formulas when they are shown
as code (```chemfig fences) rather than rendered as structures.

Token types:
- Name.Builtin: Commands (e.g., \\chemfig, \\lewis, \\arrow)
- Name.Class: Atom groups (e.g., H_2O, CH_3, C)
- Operator: Bonds (-, =, ~, >, <, >:, <|)
- Number: Bond angles and lengths inside [...]
- Punctuation: Braces, branch parentheses and ring markers
- Comment: % comments
"""

from pygments.lexer import RegexLexer, bygroups
from pygments.token import (
    Text,
    Punctuation,
    Name,
    Operator,
    Number,
    Comment,
)


class ChemfigLexer(RegexLexer):
    """
    Lexer for chemfig formulas

    Example:
        \\chemfig{H-C(-[2]H)(-[6]H)-OH}

    Tokens:
        \\chemfig → Name.Builtin
        { → Punctuation
        H, C, OH → Name.Class
        - → Operator
        ( → Punctuation
        [2] → Number
    """

    name = 'Chemfig'
    aliases = ['chemfig', 'chem']
    filenames = ['*.chemfig']

    tokens = {
        'root': [
            # LaTeX comments
            (r'%.*?$', Comment.Single),

            # Commands with an optional brace group
            (r'(\\[a-zA-Z]+)(\{)?', bygroups(Name.Builtin, Punctuation), 'formula'),

            (r'\{', Punctuation, 'formula'),
            (r'\}', Punctuation),

            (r'[^\\{}%]+', Text),
            (r'.', Text),
        ],

        'formula': [
            (r'%.*?$', Comment.Single),

            # Nested commands (\lewis, \charge, ...)
            (r'\\[a-zA-Z]+', Name.Builtin),

            # Bond options: [angle,length,...] or [:30] absolute angle
            (r'(\[)([^\]]*)(\])', bygroups(Punctuation, Number, Punctuation)),

            # Ring notation: *6(...) and **6(...)
            (r'\*{1,2}\d+', Punctuation),

            # Bonds: single, double, triple, cram, dashed cram
            (r'<\||>\||<:|>:|[-=~<>]', Operator),

            # Branches
            (r'[()]', Punctuation),

            # Atom groups with optional sub/superscripts (H_2O, SO_4^{2-})
            (r'[A-Z][a-z]?(?:_\{?[\w+-]+\}?|\^\{?[\w+-]+\}?|\d)*', Name.Class),

            # Ring-closing hooks (?, ?[a])
            (r'\?(?:\[[^\]]*\])?', Punctuation),

            # Nested braces
            (r'\{', Punctuation, '#push'),
            (r'\}', Punctuation, '#pop'),

            (r'\s+', Text),
            (r'.', Text),
        ],
    }
