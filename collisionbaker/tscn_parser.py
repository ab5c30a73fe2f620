"""Reader for the Godot text scene format (``.tscn`` / ``.tres``).

Turns scene text into a list of :class:`~collisionbaker.records.Record`.
Only the structure is interpreted here; what a record *means* is up to the
scene index and the bake pipeline.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from collisionbaker.errors import ParseError
from collisionbaker.records import Constructable, NodePath, Record, StringName, Variant


class Token(NamedTuple):
    kind: str
    text: str
    line: int


# A body key is everything from the start of a line up to " =", so tile
# keys like ``0:0/0/physics_layer_0/polygon_0/points`` come through whole.
_TOKEN_RE = re.compile(
    r"""
      (?P<key>^[^\s=\[\]{}(),;"&^][^=\n"]*?(?=[ \t]*=))
    | (?P<ws>[ \t\r\f\v]+)
    | (?P<newline>\n)
    | (?P<comment>;[^\n]*)
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<number>[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_/]*)
    | (?P<punct>[\[\](){},:=&^-])
    """,
    re.VERBOSE | re.MULTILINE,
)

MAX_CODE_POINT = 0x10FFFF
OBJECT_TYPE = "Object"

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "a": "\a",
    "v": "\v",
    '"': '"',
    "'": "'",
    "\\": "\\",
}

_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|U[0-9a-fA-F]{6}|.)", re.DOTALL)

_KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "nil": None,
    "inf": math.inf,
    "inf_neg": -math.inf,
    "nan": math.nan,
}


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    line = 1
    pos = 0
    length = len(text)
    while pos < length:
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ParseError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup
        value = match.group()
        if kind not in ("ws", "newline", "comment"):
            tokens.append(Token(kind, value, line))
        line += value.count("\n")
        pos = match.end()
    return tokens


def _unescape(body: str, line: int = 0) -> str:
    def replace(match: "re.Match[str]") -> str:
        code = match.group(1)
        if code[0] in "uU" and len(code) > 1:
            code_point = int(code[1:], 16)
            if code_point > MAX_CODE_POINT:
                raise ParseError(f"invalid unicode escape '\\{code}'", line)
            return chr(code_point)
        return _ESCAPES.get(code, code)

    return _ESCAPE_RE.sub(replace, body)


def _string_value(token: Token) -> str:
    return _unescape(token.text[1:-1], token.line)


def _format_type_argument(value: Any) -> str:
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return str(value)


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    # ----------------- token helpers -----------------

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            last_line = self.tokens[-1].line if self.tokens else 0
            raise ParseError("unexpected end of input", last_line)
        self.pos += 1
        return token

    def _at(self, kind: str, text: Optional[str] = None, offset: int = 0) -> bool:
        token = self._peek(offset)
        if token is None or token.kind != kind:
            return False
        return text is None or token.text == text

    def _expect(self, kind: str, text: Optional[str] = None) -> Token:
        token = self._next()
        if token.kind != kind or (text is not None and token.text != text):
            expected = repr(text) if text is not None else kind
            raise ParseError(f"expected {expected}, got {token.text!r}", token.line)
        return token

    # ----------------- document -----------------

    def parse_document(self) -> List[Record]:
        pending: List[Tuple[str, Dict[str, Any], Dict[str, Any], int]] = []
        while self._peek() is not None:
            if self._at("punct", "["):
                pending.append(self._parse_header())
                continue

            token = self._peek()
            key = self._parse_key()
            self._expect("punct", "=")
            value = self._parse_value()
            if not pending:
                raise ParseError(f"assignment to {key!r} outside of any record", token.line)
            pending[-1][2].setdefault(key, value)

        return [
            Record(identifier=identifier, fields=fields, assignments=assignments, line=line)
            for identifier, fields, assignments, line in pending
        ]

    def _parse_header(self) -> Tuple[str, Dict[str, Any], Dict[str, Any], int]:
        opening = self._expect("punct", "[")
        identifier = self._expect("ident").text
        fields: Dict[str, Any] = {}
        while not self._at("punct", "]"):
            key = self._parse_key()
            self._expect("punct", "=")
            fields.setdefault(key, self._parse_value())
        self._expect("punct", "]")
        return identifier, fields, {}, opening.line

    def _parse_key(self) -> str:
        token = self._next()
        if token.kind in ("key", "ident"):
            return token.text
        if token.kind == "string":
            return _string_value(token)
        raise ParseError(f"expected a key, got {token.text!r}", token.line)

    # ----------------- values -----------------

    def _parse_value(self) -> Variant:
        token = self._next()

        if token.kind == "string":
            return _string_value(token)

        if token.kind == "number":
            text = token.text
            if any(c in text for c in ".eE"):
                return float(text)
            return int(text)

        if token.kind == "ident":
            if token.text in _KEYWORDS:
                return _KEYWORDS[token.text]
            return self._parse_constructable(token)

        if token.kind == "punct":
            if token.text == "[":
                return self._parse_sequence("]")
            if token.text == "{":
                return self._parse_dictionary()
            if token.text == "&":
                return StringName(_string_value(self._expect("string")))
            if token.text == "^":
                return NodePath(_string_value(self._expect("string")))
            if token.text == "-" and self._at("ident", "inf"):
                self._next()
                return -math.inf

        raise ParseError(f"unexpected {token.text!r} where a value was expected", token.line)

    def _parse_type_name(self, token: Token) -> str:
        """``Array[int]``, ``Dictionary[String, int]``, ``Array[ExtResource("1_x")]``."""
        name = token.text
        if self._at("punct", "["):
            self._next()
            inner = [self._parse_type_argument()]
            while self._at("punct", ","):
                self._next()
                inner.append(self._parse_type_argument())
            self._expect("punct", "]")
            name = f"{name}[{', '.join(inner)}]"
        return name

    def _parse_type_argument(self) -> str:
        name = self._parse_type_name(self._expect("ident"))
        if self._at("punct", "("):
            self._next()
            arguments = self._parse_sequence(")")
            name = f"{name}({', '.join(_format_type_argument(a) for a in arguments)})"
        return name

    def _parse_constructable(self, token: Token) -> Constructable:
        identifier = self._parse_type_name(token)
        if not self._at("punct", "("):
            raise ParseError(f"unknown identifier {identifier!r}", token.line)
        self._next()
        if identifier == OBJECT_TYPE and self._at("ident"):
            return self._parse_object()
        return Constructable(identifier, self._parse_sequence(")"))

    def _parse_object(self) -> Constructable:
        """``Object(Class, "property": value, ...)``, arguments are (class, properties)."""
        class_name = self._next().text
        properties: Dict[str, Variant] = {}
        while self._at("punct", ","):
            self._next()
            if self._at("punct", ")"):
                break
            key = _string_value(self._expect("string"))
            self._expect("punct", ":")
            properties.setdefault(key, self._parse_value())
        self._expect("punct", ")")
        return Constructable(OBJECT_TYPE, (class_name, properties))

    def _parse_sequence(self, closing: str) -> List[Any]:
        items: List[Any] = []
        while not self._at("punct", closing):
            items.append(self._parse_value())
            if self._at("punct", ","):
                self._next()
            elif not self._at("punct", closing):
                token = self._next()
                raise ParseError(f"expected ',' or {closing!r}, got {token.text!r}", token.line)
        self._expect("punct", closing)
        return items

    def _parse_dictionary(self) -> Dict[Any, Any]:
        result: Dict[Any, Any] = {}
        while not self._at("punct", "}"):
            token = self._peek()
            key = self._parse_value()
            self._expect("punct", ":")
            value = self._parse_value()
            try:
                result[key] = value
            except TypeError:
                raise ParseError(f"unhashable dictionary key {key!r}", token.line) from None
            if self._at("punct", ","):
                self._next()
            elif not self._at("punct", "}"):
                bad = self._next()
                raise ParseError(f"expected ',' or '}}', got {bad.text!r}", bad.line)
        self._expect("punct", "}")
        return result



def parse(text: str) -> List[Record]:
    """Parse scene text into records, in file order."""
    return _Parser(tokenize(text)).parse_document()


def parse_file(path: str) -> List[Record]:
    with open(path, "rb") as f:
        data = f.read()
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        line = data.count(b"\n", 0, exc.start) + 1
        raise ParseError(f"invalid UTF-8 in {path}: {exc.reason}", line) from exc
    return parse(text)
