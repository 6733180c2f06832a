"""
Syntax painting for the file viewer.

A single-pass regex scanner for JavaScript/JSX. It is meant for display
only: every line's tokens join back to exactly the input line.
"""

import re
from typing import List

from .models import Token, TokenKind

KEYWORDS = (
    "import", "export", "from", "const", "let", "var", "function", "return",
    "if", "else", "try", "catch", "finally", "async", "await", "for", "while",
    "class", "extends", "new",
)

# Leftmost match wins; on ties the first alternative wins
_SCANNER = re.compile(
    r"(?P<comment>//.*)"
    r"|(?P<string>(['\"`]).*?\3)"
    r"|(?P<tag></?[A-Za-z][\w.-]*)"
    r"|(?P<attribute>(?<![\w.-])[A-Za-z][\w.-]*(?==(?!=)))"
    r"|(?P<keyword>\b(?:" + "|".join(KEYWORDS) + r")\b)"
    r"|(?P<number>\b\d+\b)"
)

_KINDS = ("comment", "string", "tag", "attribute", "keyword", "number")


def highlight_line(line: str) -> List[Token]:
    """Paint one line of source."""
    tokens: List[Token] = []
    pos = 0
    for match in _SCANNER.finditer(line):
        start, end = match.span()
        if start > pos:
            tokens.append(Token(kind=TokenKind.TEXT, text=line[pos:start]))
        kind = next(k for k in _KINDS if match.group(k) is not None)
        tokens.append(Token(kind=TokenKind(kind), text=match.group(0)))
        pos = end
    if pos < len(line):
        tokens.append(Token(kind=TokenKind.TEXT, text=line[pos:]))
    return tokens


def highlight(code: str) -> List[List[Token]]:
    """Paint source code line by line. Empty lines give empty token lists."""
    if not code:
        return []
    return [highlight_line(line) for line in code.split("\n")]
