"""Tokenizer for attribute argument text and source files.

Produces a token tree: identifiers, punctuation, literals and lifetimes are
leaves; bracketed regions become ``GROUP`` tokens holding their contents.
Comments, doc comments included, are dropped.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = ["TokenKind", "Token", "LexError", "tokenize"]

_OPEN = {"(": ")", "[": "]", "{": "}"}
_CLOSE = {v: k for k, v in _OPEN.items()}
_PUNCT = frozenset("+-*/%^!&|=<>@.,;:#$?~")
_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    "0": "\0",
    "'": "'",
    '"': '"',
}


class TokenKind(enum.Enum):
    """The kind of a lexed token."""

    IDENT = "ident"
    PUNCT = "punct"
    STRING = "string"
    CHAR = "char"
    LITERAL = "literal"
    LIFETIME = "lifetime"
    GROUP = "group"


class LexError(ValueError):
    """Raised when text cannot be split into tokens."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f"{message} (at offset {offset})")
        self.offset = offset


@dataclass(frozen=True)
class Token:
    """A single token, or a delimited group of tokens.

    ``text`` is the token as written in the source; for a group it is the
    opening delimiter. ``value`` holds the decoded content of string and
    character literals.
    """

    kind: TokenKind
    text: str
    offset: int
    value: str | None = None
    children: tuple[Token, ...] = ()

    def is_ident(self, name: str) -> bool:
        """True if this is the identifier ``name``."""
        return self.kind is TokenKind.IDENT and self.text == name

    def is_punct(self, char: str) -> bool:
        """True if this is the punctuation character ``char``."""
        return self.kind is TokenKind.PUNCT and self.text == char

    @property
    def closing(self) -> str | None:
        """The closing delimiter of a group, or None for other tokens."""
        return _OPEN.get(self.text) if self.kind is TokenKind.GROUP else None


def tokenize(source: str) -> list[Token]:
    """Split ``source`` into a list of top-level tokens."""
    stack: list[tuple[str, int, list[Token]]] = []
    current: list[Token] = []
    i = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c.isspace():
            i += 1
        elif source.startswith("//", i):
            end = source.find("\n", i)
            i = n if end < 0 else end + 1
        elif source.startswith("/*", i):
            i = _skip_block_comment(source, i)
        elif c in _OPEN:
            stack.append((c, i, current))
            current = []
            i += 1
        elif c in _CLOSE:
            if not stack:
                raise LexError(f"unmatched closing delimiter `{c}`", i)
            open_char, start, parent = stack.pop()
            if _OPEN[open_char] != c:
                raise LexError(
                    f"mismatched delimiter: `{open_char}` closed by `{c}`", i
                )
            parent.append(Token(TokenKind.GROUP, open_char, start, children=tuple(current)))
            current = parent
            i += 1
        else:
            token, i = _lex_atom(source, i)
            current.append(token)
    if stack:
        open_char, start, _ = stack[-1]
        raise LexError(f"unclosed delimiter `{open_char}`", start)
    return current


def _skip_block_comment(source: str, start: int) -> int:
    depth = 0
    i = start
    n = len(source)
    while i < n:
        if source.startswith("/*", i):
            depth += 1
            i += 2
        elif source.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    raise LexError("unterminated block comment", start)


def _is_ident_start(c: str) -> bool:
    return c == "_" or c.isalpha()


def _is_ident_continue(c: str) -> bool:
    return c == "_" or c.isalnum()


def _peek(source: str, i: int) -> str:
    return source[i] if i < len(source) else ""


def _read_ident_end(source: str, i: int) -> int:
    while i < len(source) and _is_ident_continue(source[i]):
        i += 1
    return i


def _lex_atom(source: str, i: int) -> tuple[Token, int]:
    c = source[i]
    nxt = _peek(source, i + 1)

    if c == '"':
        value, end = _read_quoted(source, i + 1, '"')
        return Token(TokenKind.STRING, source[i:end], i, value), end

    if c == "r" and nxt in ('"', "#"):
        hashes = i + 1
        while _peek(source, hashes) == "#":
            hashes += 1
        if _peek(source, hashes) == '"':
            value, end = _read_raw(source, i + 1)
            return Token(TokenKind.STRING, source[i:end], i, value), end
        if hashes == i + 2 and _is_ident_start(_peek(source, hashes)):
            end = _read_ident_end(source, hashes)
            return Token(TokenKind.IDENT, source[i:end], i), end

    if c == "b":
        if nxt in ('"', "'"):
            _, end = _read_quoted(source, i + 2, nxt)
            return Token(TokenKind.LITERAL, source[i:end], i), end
        if nxt == "r" and _peek(source, i + 2) in ('"', "#"):
            _, end = _read_raw(source, i + 2)
            return Token(TokenKind.LITERAL, source[i:end], i), end

    if c == "'":
        return _lex_quote(source, i)

    if _is_ident_start(c):
        end = _read_ident_end(source, i)
        return Token(TokenKind.IDENT, source[i:end], i), end

    if c.isdigit():
        end = _read_number_end(source, i)
        return Token(TokenKind.LITERAL, source[i:end], i), end

    if c in _PUNCT:
        return Token(TokenKind.PUNCT, c, i), i + 1

    raise LexError(f"unexpected character {c!r}", i)


def _lex_quote(source: str, i: int) -> tuple[Token, int]:
    nxt = _peek(source, i + 1)
    if nxt == "\\" or (nxt and _peek(source, i + 2) == "'"):
        value, end = _read_quoted(source, i + 1, "'")
        if len(value) != 1:
            raise LexError("character literal must hold exactly one character", i)
        return Token(TokenKind.CHAR, source[i:end], i, value), end
    if nxt and _is_ident_start(nxt):
        end = _read_ident_end(source, i + 1)
        return Token(TokenKind.LIFETIME, source[i:end], i), end
    raise LexError("malformed character literal or lifetime", i)


def _read_number_end(source: str, i: int) -> int:
    end = _read_ident_end(source, i)
    if _peek(source, end) == "." and _peek(source, end + 1).isdigit():
        end = _read_ident_end(source, end + 1)
    if (
        source[end - 1] in "eE"
        and not source[i:end].lower().startswith("0x")
        and _peek(source, end) in ("+", "-")
        and _peek(source, end + 1).isdigit()
    ):
        end = _read_ident_end(source, end + 1)
    return end


def _read_quoted(source: str, i: int, quote: str) -> tuple[str, int]:
    """Decode a quoted literal whose body starts at ``i``; return value and end."""
    start = i - 1
    parts: list[str] = []
    n = len(source)
    while i < n:
        c = source[i]
        if c == quote:
            return "".join(parts), i + 1
        if c == "\\":
            text, i = _read_escape(source, i)
            parts.append(text)
        else:
            parts.append(c)
            i += 1
    raise LexError("unterminated literal", start)


def _read_escape(source: str, i: int) -> tuple[str, int]:
    kind = _peek(source, i + 1)
    if kind in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[kind], i + 2
    if kind == "\n":
        j = i + 2
        while j < len(source) and source[j].isspace():
            j += 1
        return "", j
    if kind == "x":
        digits = source[i + 2 : i + 4]
        if len(digits) != 2 or not all(d in "0123456789abcdefABCDEF" for d in digits):
            raise LexError("malformed \\x escape", i)
        code = int(digits, 16)
        if code > 0x7F:
            raise LexError("\\x escape out of range", i)
        return chr(code), i + 4
    if kind == "u":
        if _peek(source, i + 2) != "{":
            raise LexError("malformed \\u escape", i)
        close = source.find("}", i + 3)
        if close < 0:
            raise LexError("unterminated \\u escape", i)
        digits = source[i + 3 : close].replace("_", "")
        if not 1 <= len(digits) <= 6 or not all(
            d in "0123456789abcdefABCDEF" for d in digits
        ):
            raise LexError("malformed \\u escape", i)
        code = int(digits, 16)
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            raise LexError("invalid unicode escape", i)
        return chr(code), close + 1
    raise LexError(f"unknown escape sequence \\{kind}", i)


def _read_raw(source: str, i: int) -> tuple[str, int]:
    """Read a raw string whose hashes (or quote) start at ``i``."""
    start = i - 1
    hashes = 0
    while _peek(source, i) == "#":
        hashes += 1
        i += 1
    if _peek(source, i) != '"':
        raise LexError("malformed raw string", start)
    terminator = '"' + "#" * hashes
    close = source.find(terminator, i + 1)
    if close < 0:
        raise LexError("unterminated raw string", start)
    return source[i + 1 : close], close + len(terminator)