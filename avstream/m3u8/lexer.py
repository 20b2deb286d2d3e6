"""Lexical scanning of m3u8 playlists into a stream of items."""

from __future__ import annotations

from enum import IntEnum
from typing import IO, Callable, Iterable, Iterator, List, NamedTuple, Optional, Union

from .model import TAG_START

_DIGITS = frozenset("0123456789")
_NUMBER_CHARS = _DIGITS | {"."}


class ItemType(IntEnum):
    ERROR = 0
    TAG = 1
    ATTR_NAME = 2
    EQUALS = 3
    NUMBER = 4
    STRING = 5
    COMMA = 6
    URL = 7
    NEWLINE = 8
    EOF = 9

    def __str__(self) -> str:
        return _TYPE_NAMES.get(self, "unknown item type")


_TYPE_NAMES = {
    ItemType.ERROR: "error",
    ItemType.TAG: "tag",
    ItemType.ATTR_NAME: "attribute name",
    ItemType.EQUALS: "equals",
    ItemType.NUMBER: "number",
    ItemType.STRING: "string",
    ItemType.COMMA: "comma",
    ItemType.URL: "url",
    ItemType.NEWLINE: "newline",
    ItemType.EOF: "EOF",
}


class Item(NamedTuple):
    """A lexical item: its type and the text it was read from.

    Items of type ERROR carry an error message instead of text.
    """

    type: ItemType
    value: str

    def __str__(self) -> str:
        if self.type == ItemType.NEWLINE:
            return "newline"
        return f"{self.type}: {self.value}"


def _is_tag_name_char(r: str) -> bool:
    return ("A" <= r <= "Z" and len(r) == 1) or r in _DIGITS or r == "-"


_State = Optional[Callable[[], "_State"]]


class _LineLexer:
    """Lexes a single tag line, which must end with a newline."""

    def __init__(self, line: str) -> None:
        self._input = line
        self._start = 0
        self._pos = 0
        self.items: List[Item] = []

    def _next(self) -> str:
        if self._pos >= len(self._input):
            return ""
        r = self._input[self._pos]
        self._pos += 1
        return r

    def _peek(self) -> str:
        if self._pos >= len(self._input):
            return ""
        return self._input[self._pos]

    def _ignore(self) -> None:
        self._start = self._pos

    def _emit(self, t: ItemType) -> None:
        self.items.append(Item(t, self._input[self._start : self._pos]))
        self._start = self._pos

    def _error(self, message: str) -> None:
        self.items.append(Item(ItemType.ERROR, message))
        return None

    def run(self) -> List[Item]:
        state: _State = self._lex_tag
        while state is not None:
            state = state()
        return self.items

    def _lex_tag(self) -> _State:
        if self._next() != "#":
            return self._error("missing starting #")
        return self._lex_tag_name

    def _lex_tag_name(self) -> _State:
        while True:
            r = self._peek()
            if _is_tag_name_char(r):
                self._next()
                continue
            if r == "\n":
                self._emit(ItemType.TAG)
                self._next()
                self._emit(ItemType.NEWLINE)
                return None
            if r == ":":
                self._emit(ItemType.TAG)
                self._next()
                self._ignore()
                return self._lex_attrs
            return self._error(f"illegal tag character {r!r}")

    def _lex_attrs(self) -> _State:
        while True:
            r = self._peek()
            if _is_tag_name_char(r):
                self._next()
                continue
            if r == "\n":
                if self._pos > self._start:
                    self._emit(ItemType.ATTR_NAME)
                self._next()
                self._emit(ItemType.NEWLINE)
                return None
            if r == "=":
                self._emit(ItemType.ATTR_NAME)
                self._next()
                self._emit(ItemType.EQUALS)
                return self._lex_attr_value
            if r == ",":
                self._next()
                self._emit(ItemType.COMMA)
                return self._lex_attrs
            if r in (".", "@"):
                return self._lex_attr_value
            return self._error(f"illegal character {r!r} in attribute name")

    def _lex_attr_value(self) -> _State:
        r = self._next()
        if r in _NUMBER_CHARS and r:
            return self._lex_number
        if r == '"':
            return self._lex_quoted_string
        if _is_tag_name_char(r):
            return self._lex_raw_string
        return self._error(f"unquoted string starting with illegal character {r!r}")

    def _lex_number(self) -> _State:
        while True:
            r = self._peek()
            if r in ("x", "@"):
                # A resolution such as 640x480 or a byte range such as 69@3000.
                return self._lex_raw_string
            if r and r in _NUMBER_CHARS:
                self._next()
                continue
            self._emit(ItemType.NUMBER)
            return self._lex_attrs

    def _lex_quoted_string(self) -> _State:
        while True:
            r = self._next()
            if r == '"':
                self._emit(ItemType.STRING)
                return self._lex_attrs
            if r in ("\n", ""):
                return self._error("unterminated quoted string")

    def _lex_raw_string(self) -> _State:
        while self._peek() not in (",", "\n", ""):
            self._next()
        self._emit(ItemType.STRING)
        return self._lex_attrs


def _lines(rd: Union[str, bytes, IO, Iterable]) -> Iterator[str]:
    if isinstance(rd, bytes):
        rd = rd.decode("utf-8")
    if isinstance(rd, str):
        rd = rd.split("\n")
    for line in rd:
        if isinstance(line, (bytes, bytearray)):
            line = bytes(line).decode("utf-8")
        line = line.rstrip("\n")
        if line.endswith("\r"):
            line = line[:-1]
        yield line


def lex(rd: Union[str, bytes, IO, Iterable]) -> Iterator[Item]:
    """Yield the lexical items of the playlist read from rd.

    rd may be a string, a text or binary stream, or an iterable of lines.
    Blank lines and comments are skipped. Lexing stops after an ERROR item.
    """
    for line in _lines(rd):
        if not line:
            continue
        if line.startswith(TAG_START):
            items = _LineLexer(line + "\n").run()
            yield from items
            if items and items[-1].type == ItemType.ERROR:
                return
        elif line.startswith("#"):
            continue
        else:
            # Not a tag, so it must be a URL.
            yield Item(ItemType.URL, line)
            yield Item(ItemType.NEWLINE, "\n")