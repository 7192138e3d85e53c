"""
SQL placeholder processing.

Callers write positional `?` placeholders for every backend. Before SQL
reaches a native client it is tokenized once and rebuilt in the client's
parameter style:

    SQL → Tokenize → Rewrite placeholders → Native SQL
           (once)      (single pass)

- `format`  (`%s`): PyMySQL and psycopg cursors. Every literal `%` is doubled.
- `numeric` (`$1`): psycopg server-side prepare through libpq.
- `qmark`   (`?`): sqlite3, passed through unchanged.

String literals, quoted identifiers and comments are never rewritten, so a
`?` inside them is not a placeholder.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

__all__ = [
    'tokenize_sql',
    'count_placeholders',
    'to_format_style',
    'to_numeric_style',
    'is_query',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    QUOTED_IDENT = auto()
    COMMENT = auto()
    PLACEHOLDER = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


# Master tokenization pattern - captures all token types in one scan
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*"|`(?:[^`]|``)*`)
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<qmark>\?)
""", re.VERBOSE | re.DOTALL)

_LEADING_NOISE = re.compile(r'^(?:\s+|--[^\n]*|/\*.*?\*/|\()*', re.DOTALL)

_QUERY_KEYWORDS = {'select', 'with', 'values', 'table'}


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('ident'):
            ttype = TokenType.QUOTED_IDENT
        elif match.group('comment'):
            ttype = TokenType.COMMENT
        else:
            ttype = TokenType.PLACEHOLDER

        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def count_placeholders(sql: str) -> int:
    """Count `?` placeholders outside literals, identifiers and comments.
    """
    return sum(1 for t in tokenize_sql(sql) if t.type is TokenType.PLACEHOLDER)


def to_format_style(sql: str) -> str:
    """Rewrite `?` placeholders as `%s` and escape literal percent signs.

    The result must always be executed with a (possibly empty) parameter
    sequence so the client collapses `%%` back to `%`.
    """
    parts = []
    for token in tokenize_sql(sql):
        if token.type is TokenType.PLACEHOLDER:
            parts.append('%s')
        else:
            parts.append(token.text.replace('%', '%%'))
    return ''.join(parts)


def to_numeric_style(sql: str) -> str:
    """Rewrite `?` placeholders as `$1`, `$2`, ... in order.
    """
    parts = []
    position = 0
    for token in tokenize_sql(sql):
        if token.type is TokenType.PLACEHOLDER:
            position += 1
            parts.append(f'${position}')
        else:
            parts.append(token.text)
    return ''.join(parts)


def is_query(sql: str) -> bool:
    """Check whether a statement's leading keyword makes it row-returning.
    """
    text = _LEADING_NOISE.sub('', sql)
    keyword = re.match(r'[A-Za-z]+', text)
    return bool(keyword) and keyword.group(0).lower() in _QUERY_KEYWORDS
