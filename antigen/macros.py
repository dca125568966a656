"""Attribute front ends: validate arguments and pass the annotated item through.

Each function takes the text between the attribute's parentheses and the
source text of the item it annotates. On success the item is returned
(``antigen`` prefixes a doc attribute); on failure :class:`ParseError` is
raised with the same message the declaration would be rejected with.
"""

from __future__ import annotations

from .lexer import LexError, Token, TokenKind, tokenize
from .parse import (
    ParseError,
    parse_antigen_args,
    parse_descended_from_args,
    parse_immune_args,
    parse_presents_args,
)

__all__ = ["antigen", "presents", "immune", "descended_from"]

_NON_UNIT_MESSAGE = (
    "#[antigen] must be applied to a unit struct (e.g., `pub struct Name;`)"
)


def antigen(args: str, item: str) -> str:
    """Validate an antigen declaration and return the struct with a doc attribute."""
    parsed = parse_antigen_args(args)
    unit = _is_unit_struct(item)
    parsed.validate()
    if not unit:
        raise ParseError(_NON_UNIT_MESSAGE)
    doc = (
        f" antigen `{parsed.name}` — declares a named failure-class.\n\n"
        " Use `antigen scan` to find sites presenting this antigen; "
        "`antigen audit` to validate witness coverage."
    )
    return f"#[doc = {_string_literal(doc)}]\n{item}"


def presents(args: str, item: str) -> str:
    """Validate a vulnerability marker and return the item unchanged."""
    parse_presents_args(args)
    return item


def immune(args: str, item: str) -> str:
    """Validate an immunity claim (a witness is required) and return the item."""
    parse_immune_args(args).validate()
    return item


def descended_from(args: str, item: str) -> str:
    """Validate a derivation marker and return the item unchanged."""
    parse_descended_from_args(args)
    return item


def _string_literal(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _is_group(tok: Token, opener: str) -> bool:
    return tok.kind is TokenKind.GROUP and tok.text == opener


def _offset(tokens: list[Token], i: int, text: str) -> int:
    return tokens[i].offset if i < len(tokens) else len(text)


def _skip_generics(tokens: list[Token], i: int, text: str) -> int:
    if i >= len(tokens) or not tokens[i].is_punct("<"):
        return i
    depth = 0
    for k in range(i, len(tokens)):
        tok = tokens[k]
        if tok.is_punct("<"):
            depth += 1
        elif tok.is_punct(">"):
            prev = tokens[k - 1]
            if prev.is_punct("-") and prev.offset + 1 == tok.offset:
                continue
            depth -= 1
            if depth == 0:
                return k + 1
    raise ParseError("unclosed generic parameter list", tokens[i].offset)


def _is_unit_struct(item: str) -> bool:
    """Return whether ``item`` is a unit struct; raise if it is no struct at all."""
    try:
        tokens = tokenize(item)
    except LexError as exc:
        raise ParseError(str(exc), exc.offset) from exc

    n = len(tokens)
    i = 0
    while i + 1 < n and tokens[i].is_punct("#") and _is_group(tokens[i + 1], "["):
        i += 2
    if i < n and tokens[i].is_ident("pub"):
        i += 1
        if i < n and _is_group(tokens[i], "("):
            i += 1
    if i >= n or not tokens[i].is_ident("struct"):
        raise ParseError("expected `struct`", _offset(tokens, i, item))
    i += 1
    if i >= n or tokens[i].kind is not TokenKind.IDENT:
        raise ParseError("expected identifier", _offset(tokens, i, item))
    i = _skip_generics(tokens, i + 1, item)
    if i >= n:
        raise ParseError("unexpected end of input, expected `;`", len(item))

    tok = tokens[i]
    if tok.kind is TokenKind.GROUP and tok.text in ("(", "{"):
        return False
    if tok.is_ident("where"):
        terminator = next(
            (
                k
                for k in range(i + 1, n)
                if tokens[k].is_punct(";") or _is_group(tokens[k], "{")
            ),
            None,
        )
        if terminator is None:
            raise ParseError("unexpected end of input, expected `;`", len(item))
        if tokens[terminator].kind is TokenKind.GROUP:
            return False
        i = terminator
    elif not tok.is_punct(";"):
        raise ParseError("expected `;`", tok.offset)

    if i != n - 1:
        raise ParseError("unexpected token", tokens[i + 1].offset)
    return True