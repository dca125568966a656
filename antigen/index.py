"""Index of function names in a source tree, used to resolve witnesses.

Functions are found structurally from the token tree: free functions,
nested functions and methods of ``impl`` blocks are recorded, trait method
declarations are not, and the bodies of macro invocations are opaque except
for ``proptest!`` blocks, whose test names are recorded as proptests.
The index is flat: name to the first file it was seen in and its kind.
"""

from __future__ import annotations

import enum
import os
from collections.abc import Iterator, Sequence
from pathlib import Path

from .lexer import LexError, Token, TokenKind, tokenize

__all__ = [
    "WitnessKind",
    "FunctionIndex",
    "collect_function_index",
    "index_source",
    "extract_proptest_fn_names",
    "macro_path_last_is",
]

_EXCLUDED_DIRS = frozenset({"target", ".git", "node_modules"})
# Words that can precede `!` without forming a macro invocation.
_NON_MACRO_WORDS = frozenset(
    {
        "if", "while", "match", "return", "in", "else", "break", "let", "mut",
        "as", "for", "loop", "move", "yield", "await", "async", "unsafe",
        "const", "static", "where", "box", "fn", "impl", "dyn",
    }
)
_ITEM_PREFIX_WORDS = frozenset({"unsafe", "default"})


class WitnessKind(enum.Enum):
    """What kind of witness mechanism a function is."""

    TEST = "test"
    PROPTEST = "proptest"
    FUNCTION = "function"


FunctionIndex = dict[str, tuple[Path, WitnessKind]]


class _Scope(enum.Enum):
    ITEMS = "items"
    IMPL = "impl"
    TRAIT = "trait"


def extract_proptest_fn_names(tokens: Sequence[Token] | str) -> list[str]:
    """Names following ``fn`` at the top level of a ``proptest!`` body."""
    if isinstance(tokens, str):
        tokens = tokenize(tokens)
    names: list[str] = []
    it = iter(tokens)
    for tok in it:
        if tok.is_ident("fn"):
            nxt = next(it, None)
            if nxt is not None and nxt.kind is TokenKind.IDENT:
                names.append(nxt.text)
    return names


def macro_path_last_is(path: str, name: str) -> bool:
    """True if the last ``::`` segment of ``path`` is ``name``."""
    return path.rsplit("::", 1)[-1].strip() == name


def index_source(source: str, file_path: str | os.PathLike[str] = "<source>") -> FunctionIndex:
    """Index the functions of one source text; raises ``LexError`` if it cannot be lexed."""
    index: FunctionIndex = {}
    _Indexer(Path(file_path), index).walk(tokenize(source), _Scope.ITEMS, block=True)
    return index


def collect_function_index(root: str | os.PathLike[str]) -> FunctionIndex:
    """Index every ``.rs`` file under ``root``; unreadable or unlexable files are skipped."""
    index: FunctionIndex = {}
    for path in _source_files(Path(root)):
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        try:
            file_index = index_source(content, path)
        except LexError:
            continue
        for name, entry in file_index.items():
            index.setdefault(name, entry)
    return index


def _source_files(root: Path) -> Iterator[Path]:
    if root.is_symlink():
        return
    if root.is_file():
        if root.suffix == ".rs":
            yield root
        return
    if root.is_dir() and root.name not in _EXCLUDED_DIRS:
        yield from _walk_dir(root)


def _walk_dir(directory: Path) -> Iterator[Path]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            if entry.name not in _EXCLUDED_DIRS:
                yield from _walk_dir(Path(entry.path))
        elif entry.is_file(follow_symlinks=False) and entry.name.endswith(".rs"):
            yield Path(entry.path)


def _is_group(tok: Token, opener: str) -> bool:
    return tok.kind is TokenKind.GROUP and tok.text == opener


def _is_test_attr(group: Token) -> bool:
    children = group.children
    return (
        bool(children)
        and children[0].is_ident("test")
        and not (len(children) > 1 and children[1].is_punct(":"))
    )


def _find_body(tokens: list[Token] | tuple[Token, ...], start: int) -> tuple[Token | None, int]:
    """Find the brace body or terminating ``;`` of an item header starting at ``start``."""
    for k in range(start, len(tokens)):
        tok = tokens[k]
        if _is_group(tok, "{"):
            return tok, k + 1
        if tok.is_punct(";"):
            return None, k + 1
    return None, len(tokens)


def _at_item_start(tokens: Sequence[Token], i: int) -> bool:
    if i == 0:
        return True
    prev = tokens[i - 1]
    return (
        prev.is_punct(";")
        or _is_group(prev, "{")
        or _is_group(prev, "[")
        or (prev.kind is TokenKind.IDENT and prev.text in _ITEM_PREFIX_WORDS)
    )


def _macro_path(tokens: Sequence[Token], i: int) -> str:
    segments = [tokens[i].text]
    k = i
    while (
        k >= 3
        and tokens[k - 1].is_punct(":")
        and tokens[k - 2].is_punct(":")
        and tokens[k - 3].kind is TokenKind.IDENT
    ):
        segments.insert(0, tokens[k - 3].text)
        k -= 3
    return "::".join(segments)


class _Indexer:
    def __init__(self, path: Path, index: FunctionIndex) -> None:
        self.path = path
        self.index = index

    def _add(self, name: str, kind: WitnessKind) -> None:
        self.index.setdefault(name, (self.path, kind))

    def _macro_end(self, tokens: Sequence[Token], i: int) -> int | None:
        """If a macro invocation starts at ``i``, record it and return the index after it."""
        tok = tokens[i]
        n = len(tokens)
        if tok.kind is not TokenKind.IDENT or tok.text in _NON_MACRO_WORDS:
            return None
        if not (i + 1 < n and tokens[i + 1].is_punct("!")):
            return None
        j = i + 2
        if j < n and tokens[j].kind is TokenKind.IDENT:
            j += 1
        if j >= n or tokens[j].kind is not TokenKind.GROUP:
            return None
        if macro_path_last_is(_macro_path(tokens, i), "proptest"):
            for name in extract_proptest_fn_names(tokens[j].children):
                self._add(name, WitnessKind.PROPTEST)
        return j + 1

    def walk(self, tokens: Sequence[Token], scope: _Scope, block: bool) -> None:
        pending_test = False
        n = len(tokens)
        i = 0
        while i < n:
            tok = tokens[i]

            if tok.is_punct("#"):
                j = i + 1
                if j < n and tokens[j].is_punct("!"):
                    j += 1
                if j < n and _is_group(tokens[j], "["):
                    if j == i + 1 and _is_test_attr(tokens[j]):
                        pending_test = True
                    i = j + 1
                else:
                    i += 1
                continue

            macro_end = self._macro_end(tokens, i)
            if macro_end is not None:
                i = macro_end
                continue

            if tok.is_ident("fn") and i + 1 < n and tokens[i + 1].kind is TokenKind.IDENT:
                if scope is not _Scope.TRAIT:
                    kind = WitnessKind.TEST if pending_test else WitnessKind.FUNCTION
                    self._add(tokens[i + 1].text, kind)
                body, i = _find_body(tokens, i + 2)
                if body is not None:
                    self.walk(body.children, _Scope.ITEMS, block=True)
                pending_test = False
                continue

            if block and (
                tok.is_ident("trait") or (tok.is_ident("impl") and _at_item_start(tokens, i))
            ):
                body, i = _find_body(tokens, i + 1)
                if body is not None:
                    inner = _Scope.IMPL if tok.text == "impl" else _Scope.TRAIT
                    self.walk(body.children, inner, block=True)
                pending_test = False
                continue

            if block and tok.is_ident("extern"):
                j = i + 1
                if j < n and tokens[j].kind is TokenKind.STRING:
                    j += 1
                if j < n and _is_group(tokens[j], "{"):
                    i = j + 1
                    pending_test = False
                    continue

            if tok.kind is TokenKind.GROUP:
                is_brace = tok.text == "{"
                self.walk(tok.children, _Scope.ITEMS, block=is_brace)
                if is_brace:
                    pending_test = False
            elif tok.is_punct(";"):
                pending_test = False
            i += 1