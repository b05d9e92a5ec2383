"""
Tokenizer for schema source text (Layer 1: Raw Text → Statement Record).

Converts the textual statement grammar into a nested record:

    {"prefix": "ex", "keyword": "leaf", "argument": "name", "substatements": [...]}

Grammar:
    statement := [prefix ":"] keyword [argument] (";" | "{" statement* "}")
    argument  := bare-token | quoted-string ("+" quoted-string)*

Syntax Notes:
    - Single quoted strings are taken literally
    - Double quoted strings understand \\n, \\t, \\" and \\\\
    - // line comments and /* block comments */ are skipped
    - Exactly one top-level statement per source

Failures raise TokenizeError carrying the character offset. The builder
turns that into a SchemaSyntaxError with a source context window.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple


class TokenizeError(Exception):
    """Raised when source text does not follow the statement grammar."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


@dataclass
class Token:
    """A lexical token with its source offset."""
    kind: str  # "bare", "string", "open", "close", "end"
    text: str
    offset: int


_TOKEN_RE = re.compile(
    r'(?P<space>\s+)'
    r'|(?P<line_comment>//[^\n]*)'
    r'|(?P<block_comment>/\*.*?\*/)'
    r'|(?P<open>\{)'
    r'|(?P<close>\})'
    r'|(?P<end>;)'
    r'|(?P<dquote>"(?:[^"\\]|\\.)*")'
    r"|(?P<squote>'[^']*')"
    r"|(?P<bare>[^\s;{}\"']+)",
    re.DOTALL,
)

_KEYWORD_RE = re.compile(r'^(?:([A-Za-z_][\w\-.]*):)?([A-Za-z_][\w\-.]*)$')

_ESCAPES = {'n': '\n', 't': '\t', '"': '"', '\\': '\\'}


def _unescape(body: str) -> str:
    return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), '\\' + m.group(1)), body)


def _lex(source: str) -> List[Token]:
    """Split source into tokens, dropping whitespace and comments."""
    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise TokenizeError("Unterminated quoted string", pos)
        kind = match.lastgroup
        text = match.group()
        if kind == 'dquote':
            tokens.append(Token('string', _unescape(text[1:-1]), pos))
        elif kind == 'squote':
            tokens.append(Token('string', text[1:-1], pos))
        elif kind in ('open', 'close', 'end', 'bare'):
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    return tokens


def _parse_argument(tokens: List[Token], pos: int) -> Tuple[str, int]:
    """Parse a bare or quoted argument, joining quoted parts on '+'."""
    token = tokens[pos]
    if token.kind == 'bare':
        return token.text, pos + 1

    parts = [token.text]
    pos += 1
    while (pos + 1 < len(tokens) and tokens[pos].kind == 'bare' and tokens[pos].text == '+'
           and tokens[pos + 1].kind == 'string'):
        parts.append(tokens[pos + 1].text)
        pos += 2
    return ''.join(parts), pos


def _parse_statement(tokens: List[Token], pos: int, eof: int) -> Tuple[Dict[str, Any], int]:
    """Parse one statement starting at tokens[pos]."""
    if pos >= len(tokens):
        raise TokenizeError("Unexpected end of input, expected a keyword", eof)

    token = tokens[pos]
    match = _KEYWORD_RE.match(token.text) if token.kind == 'bare' else None
    if match is None:
        raise TokenizeError(f"Expected a keyword, got '{token.text}'", token.offset)

    record: Dict[str, Any] = {}
    if match.group(1):
        record['prefix'] = match.group(1)
    record['keyword'] = match.group(2)
    pos += 1

    if pos < len(tokens) and tokens[pos].kind in ('bare', 'string'):
        record['argument'], pos = _parse_argument(tokens, pos)

    substatements: List[Dict[str, Any]] = []
    record['substatements'] = substatements

    if pos >= len(tokens):
        raise TokenizeError("Unexpected end of input, expected ';' or '{'", eof)

    token = tokens[pos]
    if token.kind == 'end':
        return record, pos + 1
    if token.kind != 'open':
        raise TokenizeError(f"Expected ';' or '{{', got '{token.text}'", token.offset)

    pos += 1
    while True:
        if pos >= len(tokens):
            raise TokenizeError("Unexpected end of input, expected '}'", eof)
        if tokens[pos].kind == 'close':
            return record, pos + 1
        child, pos = _parse_statement(tokens, pos, eof)
        substatements.append(child)


def tokenize(source: str) -> Dict[str, Any]:
    """
    Convert schema source into a statement record.

    Args:
        source: Schema text containing exactly one top-level statement

    Returns:
        Nested record dict (keyword, optional prefix/argument, substatements)

    Raises:
        TokenizeError: If the source is malformed (carries .offset)
    """
    tokens = _lex(source)
    record, pos = _parse_statement(tokens, 0, len(source))
    if pos < len(tokens):
        raise TokenizeError(
            f"Unexpected content after statement: '{tokens[pos].text}'", tokens[pos].offset
        )
    return record


__all__ = [
    "tokenize",
    "TokenizeError",
]
