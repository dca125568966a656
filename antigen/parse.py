"""Parsing and validation of antigen attribute arguments.

Each ``parse_*`` function takes the text between the parentheses of an
attribute, e.g. ``name = "x", fingerprint = "y"``. Every failure is reported
as a :class:`ParseError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .lexer import LexError, Token, TokenKind, tokenize

__all__ = [
    "ParseError",
    "AntigenArgs",
    "PresentsArgs",
    "ImmuneArgs",
    "DescendedFromArgs",
    "parse_antigen_args",
    "parse_presents_args",
    "parse_immune_args",
    "parse_descended_from_args",
    "is_kebab_case",
]

# Words that are never accepted where a plain identifier is expected.
_KEYWORDS = frozenset(
    {
        "_", "abstract", "as", "async", "await", "become", "box", "break",
        "const", "continue", "crate", "do", "dyn", "else", "enum", "extern",
        "false", "final", "fn", "for", "if", "impl", "in", "let", "loop",
        "macro", "match", "mod", "move", "mut", "override", "priv", "pub",
        "ref", "return", "Self", "self", "static", "struct", "super", "trait",
        "true", "try", "type", "typeof", "unsafe", "unsized", "use",
        "virtual", "where", "while", "yield",
    }
)
# Keywords that may still appear as a segment of a path.
_PATH_SEGMENT_KEYWORDS = frozenset({"self", "super", "crate", "Self", "try"})

_ANTIGEN_FIELDS = "name, fingerprint, family, summary, references"
_KEBAB_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789-")


class ParseError(ValueError):
    """Raised when attribute arguments are malformed or invalid."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset


@dataclass
class AntigenArgs:
    """Arguments of an ``antigen(...)`` declaration."""

    name: str
    fingerprint: str
    family: str | None = None
    summary: str | None = None
    references: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Raise :class:`ParseError` unless the arguments are semantically valid."""
        if not self.name:
            raise ParseError("#[antigen] `name` cannot be empty")
        if not is_kebab_case(self.name):
            raise ParseError(
                f'#[antigen] `name = "{self.name}"` must be kebab-case '
                "(lowercase with hyphens)"
            )
        if not self.fingerprint:
            raise ParseError("#[antigen] `fingerprint` cannot be empty")


@dataclass
class PresentsArgs:
    """Arguments of a ``presents(AntigenType)`` marker."""

    antigen: str


@dataclass
class ImmuneArgs:
    """Arguments of an ``immune(AntigenType, witness = ..., rationale = "...")`` claim."""

    antigen: str
    witness: str | None = None
    rationale: str | None = None

    def validate(self) -> None:
        """Raise :class:`ParseError` if the claim carries no witness."""
        if self.witness is None:
            raise ParseError(
                "#[immune] requires `witness = ...` (a test, proptest, lint reference, "
                "formal-verification proof, or phantom-type construction). "
                "A marker without proof is not a claim."
            )


@dataclass
class DescendedFromArgs:
    """Arguments of a ``descended_from(parent::path)`` marker."""

    parent: str


@dataclass(frozen=True)
class _Expr:
    tokens: tuple[Token, ...]
    text: str


class _Cursor:
    def __init__(self, tokens: list[Token], text: str) -> None:
        self._tokens = tokens
        self._text = text
        self._pos = 0

    @property
    def empty(self) -> bool:
        return self._pos >= len(self._tokens)

    def peek(self, ahead: int = 0) -> Token | None:
        idx = self._pos + ahead
        return self._tokens[idx] if idx < len(self._tokens) else None

    def advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _here(self) -> int:
        tok = self.peek()
        return tok.offset if tok is not None else len(self._text)

    def at_punct(self, char: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.is_punct(char)

    def at_path_sep(self) -> bool:
        first, second = self.peek(), self.peek(1)
        return (
            first is not None
            and second is not None
            and first.is_punct(":")
            and second.is_punct(":")
            and second.offset == first.offset + 1
        )

    def expect_punct(self, char: str) -> Token:
        tok = self.peek()
        if tok is None:
            raise ParseError(f"unexpected end of input, expected `{char}`", self._here())
        if not tok.is_punct(char):
            raise ParseError(f"expected `{char}`", tok.offset)
        return self.advance()

    def expect_ident(self, allowed: frozenset[str] = frozenset()) -> Token:
        tok = self.peek()
        if tok is None:
            raise ParseError("unexpected end of input, expected identifier", self._here())
        if tok.kind is not TokenKind.IDENT:
            raise ParseError("expected identifier", tok.offset)
        if tok.text in _KEYWORDS and tok.text not in allowed:
            raise ParseError(f"expected identifier, found keyword `{tok.text}`", tok.offset)
        return self.advance()

    def expect_string(self) -> Token:
        tok = self.peek()
        if tok is None or tok.kind is not TokenKind.STRING:
            raise ParseError("expected string literal", self._here())
        return self.advance()

    def take_expr(self) -> _Expr:
        start = self._pos
        while not self.empty and not self.at_punct(","):
            self._pos += 1
        tokens = tuple(self._tokens[start : self._pos])
        if not tokens:
            raise ParseError("expected an expression", self._here())
        first = tokens[0]
        if first.is_punct("=") or any(t.is_punct(";") for t in tokens):
            raise ParseError("expected an expression", first.offset)
        end = self._here()
        return _Expr(tokens, self._text[first.offset : end].strip())

    def finish(self) -> None:
        tok = self.peek()
        if tok is not None:
            raise ParseError("unexpected token", tok.offset)


def _cursor_for(text: str) -> _Cursor:
    try:
        tokens = tokenize(text)
    except LexError as exc:
        raise ParseError(str(exc), exc.offset) from exc
    return _Cursor(tokens, text)


def _parse_path(cursor: _Cursor) -> str:
    prefix = ""
    if cursor.at_path_sep():
        cursor.advance()
        cursor.advance()
        prefix = "::"
    segments = [cursor.expect_ident(_PATH_SEGMENT_KEYWORDS).text]
    while cursor.at_path_sep():
        cursor.advance()
        cursor.advance()
        segments.append(cursor.expect_ident(_PATH_SEGMENT_KEYWORDS).text)
    return prefix + "::".join(segments)


def _string_literal(tokens: tuple[Token, ...] | list[Token]) -> str | None:
    if len(tokens) == 1 and tokens[0].kind is TokenKind.STRING:
        return tokens[0].value
    return None


def _expect_string(key: str, expr: _Expr) -> str:
    value = _string_literal(expr.tokens)
    if value is None:
        raise ParseError(f"expected a string literal for `{key}`", expr.tokens[0].offset)
    return value


def _split_commas(tokens: tuple[Token, ...]) -> list[list[Token]]:
    items: list[list[Token]] = []
    current: list[Token] = []
    for tok in tokens:
        if tok.is_punct(","):
            items.append(current)
            current = []
        else:
            current.append(tok)
    if current:
        items.append(current)
    return items


def _expect_string_array(key: str, expr: _Expr) -> list[str]:
    tokens = expr.tokens
    if not (len(tokens) == 1 and tokens[0].kind is TokenKind.GROUP and tokens[0].text == "["):
        raise ParseError(f"expected a string array for `{key}`", tokens[0].offset)
    group = tokens[0]
    result: list[str] = []
    for element in _split_commas(group.children):
        if not element:
            raise ParseError("expected an expression", group.offset)
        value = _string_literal(element)
        if value is None:
            raise ParseError(
                "expected a string literal in references array", element[0].offset
            )
        result.append(value)
    return result


def parse_antigen_args(text: str) -> AntigenArgs:
    """Parse the arguments of an ``antigen(...)`` declaration."""
    cursor = _cursor_for(text)
    pairs: list[tuple[Token, _Expr]] = []
    while not cursor.empty:
        key = cursor.expect_ident()
        cursor.expect_punct("=")
        pairs.append((key, cursor.take_expr()))
        if cursor.empty:
            break
        cursor.expect_punct(",")

    name: str | None = None
    fingerprint: str | None = None
    family: str | None = None
    summary: str | None = None
    references: list[str] = []
    for key, expr in pairs:
        field_name = key.text
        if field_name == "name":
            name = _expect_string(field_name, expr)
        elif field_name == "fingerprint":
            fingerprint = _expect_string(field_name, expr)
        elif field_name == "family":
            family = _expect_string(field_name, expr)
        elif field_name == "summary":
            summary = _expect_string(field_name, expr)
        elif field_name == "references":
            references = _expect_string_array(field_name, expr)
        else:
            raise ParseError(
                f"unknown #[antigen] field `{field_name}`; expected one of: {_ANTIGEN_FIELDS}",
                key.offset,
            )

    if name is None:
        raise ParseError('#[antigen] requires `name = "..."`', len(text))
    if fingerprint is None:
        raise ParseError('#[antigen] requires `fingerprint = "..."`', len(text))
    return AntigenArgs(name, fingerprint, family, summary, references)


def parse_presents_args(text: str) -> PresentsArgs:
    """Parse the single path argument of a ``presents(...)`` marker."""
    cursor = _cursor_for(text)
    antigen = _parse_path(cursor)
    cursor.finish()
    return PresentsArgs(antigen)


def parse_immune_args(text: str) -> ImmuneArgs:
    """Parse the arguments of an ``immune(...)`` claim (without validating it)."""
    cursor = _cursor_for(text)
    antigen = _parse_path(cursor)
    witness: str | None = None
    rationale: str | None = None
    while not cursor.empty:
        cursor.expect_punct(",")
        if cursor.empty:
            break
        key = cursor.expect_ident()
        cursor.expect_punct("=")
        if key.text == "witness":
            witness = cursor.take_expr().text
        elif key.text == "rationale":
            rationale = cursor.expect_string().value
        else:
            raise ParseError(
                f"unknown #[immune] field `{key.text}`; expected one of: witness, rationale",
                key.offset,
            )
    return ImmuneArgs(antigen, witness, rationale)


def parse_descended_from_args(text: str) -> DescendedFromArgs:
    """Parse the single parent path of a ``descended_from(...)`` marker."""
    cursor = _cursor_for(text)
    parent = _parse_path(cursor)
    cursor.finish()
    return DescendedFromArgs(parent)


def is_kebab_case(s: str) -> bool:
    """True if ``s`` is lowercase ASCII letters and digits joined by single hyphens."""
    return (
        bool(s)
        and all(c in _KEBAB_CHARS for c in s)
        and not s.startswith("-")
        and not s.endswith("-")
        and "--" not in s
    )