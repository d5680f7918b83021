"""
Declarative schema language used to describe service input and output.

Schemas are parsed, never evaluated, and compiled into pydantic ``TypeAdapter``
validators. Grammar (whitespace-insensitive)::

    type     := member ("|" member)*
    member   := primary ("[]")*
    primary  := NAME args? | "array" "<" type ">" args? | "{" fields? "}"
              | "(" type ")" | STRING | NUMBER | "true" | "false"
    fields   := field ("," field)* ","?
    field    := (IDENT | STRING) "?"? ":" type
    args     := "(" IDENT "=" (NUMBER | STRING) ("," IDENT "=" (NUMBER | STRING))* ")"

Names: ``string``, ``number``, ``integer``, ``boolean``, ``null``, ``any``,
``object``. Arguments: ``min``/``max`` (length for strings and arrays, bounds
for numbers) and ``pattern`` for strings. Example::

    array<{name: string(min=1), picture_url?: string}>
"""

import ast
import itertools
import json
import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, TypeAdapter, create_model

from scraping.errors import SchemaSyntaxError

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<ident>[A-Za-z_$][\w$]*)
  | (?P<punct>\[\]|[<>{}(),:?|=])
    """,
    re.VERBOSE,
)

_SCALAR_ARGS = {
    "string": {"min", "max", "pattern"},
    "number": {"min", "max"},
    "integer": {"min", "max"},
    "array": {"min", "max"},
}
_model_counter = itertools.count(1)


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    position: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise SchemaSyntaxError(f"Unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(0), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    # -- token helpers --------------------------------------------------
    def _peek(self) -> Optional[_Token]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> _Token:
        token = self._peek()
        if token is None:
            raise SchemaSyntaxError("Unexpected end of schema", len(self.text))
        self.index += 1
        return token

    def _accept(self, value: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "punct" and token.value == value:
            self.index += 1
            return True
        return False

    def _expect(self, value: str) -> None:
        token = self._peek()
        if not self._accept(value):
            where = token.position if token else len(self.text)
            found = repr(token.value) if token else "end of schema"
            raise SchemaSyntaxError(f"Expected {value!r} but found {found}", where)

    # -- grammar --------------------------------------------------------
    def parse(self) -> Any:
        if not self.tokens:
            raise SchemaSyntaxError("Schema is empty", 0)
        result = self._type()
        token = self._peek()
        if token is not None:
            raise SchemaSyntaxError(f"Unexpected {token.value!r}", token.position)
        return result

    def _type(self) -> Any:
        members = [self._member()]
        while self._accept("|"):
            members.append(self._member())
        if len(members) == 1:
            return members[0]
        return Union[tuple(members)]  # type: ignore[return-value]

    def _member(self) -> Any:
        annotation = self._primary()
        while self._accept("[]"):
            annotation = List[annotation]  # type: ignore[valid-type]
        return annotation

    def _primary(self) -> Any:
        token = self._advance()
        if token.kind == "punct":
            if token.value == "{":
                return self._object()
            if token.value == "(":
                inner = self._type()
                self._expect(")")
                return inner
            raise SchemaSyntaxError(f"Unexpected {token.value!r}", token.position)
        if token.kind == "string":
            return Literal[_unquote(token.value)]
        if token.kind == "number":
            return Literal[_number(token.value)]
        return self._named(token)

    def _named(self, token: _Token) -> Any:
        name = token.value.lower()
        if name == "true":
            return Literal[True]
        if name == "false":
            return Literal[False]
        if name == "array":
            self._expect("<")
            item = self._type()
            self._expect(">")
            args = self._args("array")
            return Annotated[List[item], Field(**_length_bounds(args))]  # type: ignore[valid-type]
        if name == "string":
            args = self._args(name)
            bounds = _length_bounds(args)
            if "pattern" in args:
                bounds["pattern"] = str(args["pattern"])
            return Annotated[StrictStr, Field(**bounds)] if bounds else StrictStr
        if name == "integer":
            args = self._args(name)
            return Annotated[StrictInt, Field(**_value_bounds(args))] if args else StrictInt
        if name == "number":
            args = self._args(name)
            if not args:
                return Union[StrictInt, StrictFloat]
            bounds = _value_bounds(args)
            return Union[Annotated[StrictInt, Field(**bounds)], Annotated[StrictFloat, Field(**bounds)]]
        if name == "boolean":
            return StrictBool
        if name == "null":
            return type(None)
        if name == "any":
            return Any
        if name == "object":
            return Dict[str, Any]
        raise SchemaSyntaxError(f"Unknown type {token.value!r}", token.position)

    def _args(self, name: str) -> Dict[str, Any]:
        if not self._accept("("):
            return {}
        allowed = _SCALAR_ARGS.get(name, set())
        args: Dict[str, Any] = {}
        while True:
            key = self._advance()
            if key.kind != "ident" or key.value not in allowed:
                raise SchemaSyntaxError(f"Unsupported argument {key.value!r} for {name}", key.position)
            self._expect("=")
            value = self._advance()
            if value.kind == "number":
                args[key.value] = _number(value.value)
            elif value.kind == "string":
                args[key.value] = _unquote(value.value)
            else:
                raise SchemaSyntaxError(f"Invalid value for {key.value!r}", value.position)
            if self._accept(")"):
                return args
            self._expect(",")

    def _object(self) -> Any:
        fields: Dict[str, Tuple[Any, Any]] = {}
        index = 0
        while not self._accept("}"):
            key = self._advance()
            if key.kind == "ident":
                field_name = key.value
            elif key.kind == "string":
                field_name = _unquote(key.value)
            else:
                raise SchemaSyntaxError(f"Expected a field name but found {key.value!r}", key.position)
            optional = self._accept("?")
            self._expect(":")
            annotation = self._type()
            default = None if optional else ...
            fields[f"field_{index}"] = (annotation, Field(default, alias=field_name))
            index += 1
            if not self._accept(","):
                self._expect("}")
                break
        return create_model(  # type: ignore[call-overload]
            f"SchemaObject{next(_model_counter)}",
            __config__=ConfigDict(extra="ignore"),
            **fields,
        )


def _unquote(raw: str) -> str:
    try:
        return ast.literal_eval(raw)
    except (ValueError, SyntaxError) as exc:
        raise SchemaSyntaxError(f"Invalid string literal {raw}") from exc


def _number(raw: str) -> Union[int, float]:
    return float(raw) if "." in raw else int(raw)


def _length_bounds(args: Dict[str, Any]) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {}
    if "min" in args:
        bounds["min_length"] = int(args["min"])
    if "max" in args:
        bounds["max_length"] = int(args["max"])
    return bounds


def _value_bounds(args: Dict[str, Any]) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {}
    if "min" in args:
        bounds["ge"] = args["min"]
    if "max" in args:
        bounds["le"] = args["max"]
    return bounds


def parse_schema(text: str) -> Any:
    """Parse schema text into a Python type annotation."""
    return _Parser(text or "").parse()


def compile_schema(text: str) -> TypeAdapter:
    """Parse schema text and return a pydantic validator for it."""
    annotation = parse_schema(text)
    try:
        return TypeAdapter(annotation)
    except Exception as exc:
        raise SchemaSyntaxError(f"Schema could not be compiled: {exc}") from exc


_IDENT_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_$")
_JS_CONSTANTS = {"true": "true", "false": "false", "null": "null", "undefined": "null"}


def _read_string(source: str, start: int) -> Tuple[str, int]:
    """Read the quoted string at ``start`` and return it re-quoted for JSON plus the index after it."""
    quote = source[start]
    out = ['"']
    index = start + 1
    while index < len(source):
        ch = source[index]
        if ch == "\\" and index + 1 < len(source):
            following = source[index + 1]
            # JSON has no \' escape
            out.append("'" if following == "'" else ch + following)
            index += 2
            continue
        if ch == quote:
            out.append('"')
            return "".join(out), index + 1
        out.append('\\"' if ch == '"' else ch)
        index += 1
    raise ValueError("Unterminated string in example arguments")


def _object_literal_to_json(source: str) -> str:
    """
    Rewrite a JS-style object literal as JSON.

    Bare keys are quoted, single-quoted strings become double-quoted and
    trailing commas are dropped. String contents are copied verbatim.
    """
    out: List[str] = []
    previous = ""
    index = 0
    while index < len(source):
        ch = source[index]
        if ch in "\"'":
            text, index = _read_string(source, index)
            out.append(text)
            previous = '"'
            continue
        if ch in _IDENT_START:
            end = index + 1
            while end < len(source) and (source[end].isalnum() or source[end] in "_$"):
                end += 1
            word = source[index:end]
            after = end
            while after < len(source) and source[after].isspace():
                after += 1
            if previous in ("{", ",") and after < len(source) and source[after] == ":":
                out.append(json.dumps(word))
            else:
                out.append(_JS_CONSTANTS.get(word, word))
            previous = word[-1]
            index = end
            continue
        if ch == ",":
            after = index + 1
            while after < len(source) and source[after].isspace():
                after += 1
            if after < len(source) and source[after] in "}]":
                index += 1
                continue
        out.append(ch)
        if not ch.isspace():
            previous = ch
        index += 1
    return "".join(out)


def parse_literal(text: str) -> Any:
    """
    Parse an example-arguments literal without executing it.

    Accepts JSON, Python literals (``ast.literal_eval``) and object literals
    with bare keys such as ``{ event_id: "7xmwzqze" }``.
    """
    source = (text or "").strip()
    if not source:
        raise ValueError("Example arguments are empty")
    try:
        return json.loads(source)
    except ValueError:
        pass
    try:
        return ast.literal_eval(source)
    except (ValueError, TypeError, SyntaxError, RecursionError):
        pass
    try:
        return json.loads(_object_literal_to_json(source))
    except ValueError as exc:
        raise ValueError(f"Example arguments are not a valid literal: {exc}") from exc


__all__ = ["parse_schema", "compile_schema", "parse_literal", "SchemaSyntaxError"]
