# contract_gateway/core/domain/expressions.py
"""
A small, side-effect-free expression language for contract metadata.

Audit directives (``resourceIdExpr``, ``beforeExpr``, ``afterExpr``) and rate
keys (``rateKeyExpr``) are written as JavaScript-flavoured snippets such as::

    `${body.env}:${params.key}`
    { planId: body.planId, quantity: body.quantity ?? null, result }
    ['-', sha256Hex(body.email), 'auth.otp.start'].join(':')

They are never handed to ``eval``. This module tokenizes and parses them into
a tiny AST and walks it against an explicit scope. Supported:

* literals: numbers, quoted strings, ``true``, ``false``, ``null``, ``undefined``
* scope identifiers, member access ``a.b``, optional member ``a?.b``, index ``a[0]``
* template strings with ``${...}`` interpolation
* object and array literals (object shorthand ``{ result }`` included)
* ``!``, unary ``-``, ``+``, binary ``-``, ``==``, ``!=``, ``===``, ``!==``,
  ``&&``, ``||``, ``??`` and the ternary ``c ? a : b``
* calls of allow-listed functions (see :class:`FunctionRegistry`) and the
  list method ``.join(sep)``

Member access only reads mapping keys, fields of pydantic models and
dataclasses, and ``length`` of strings/lists. Names starting with an
underscore are rejected outright.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from contract_gateway.core.domain.exceptions import ExpressionError
from contract_gateway.core.domain.models import MISSING

MAX_EXPRESSION_LENGTH = 2000
MAX_NESTING_DEPTH = 64

# ---------------------------------------------------------------------------
# Value helpers (JavaScript-like semantics)
# ---------------------------------------------------------------------------


def is_nullish(value: Any) -> bool:
    return value is None or value is MISSING


def truthy(value: Any) -> bool:
    if is_nullish(value) or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def to_js_string(value: Any) -> str:
    """Stringifies a value the way a template literal would."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, separators=(",", ":"), default=str, sort_keys=True)


def plain(value: Any) -> Any:
    """Replaces ``MISSING`` with ``None`` so the sentinel never escapes the evaluator."""
    return None if value is MISSING else value


def _strict_equals(left: Any, right: Any) -> bool:
    if is_nullish(left) or is_nullish(right):
        return left is right
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if isinstance(left, str) != isinstance(right, str):
        return False
    return left == right


def _loose_equals(left: Any, right: Any) -> bool:
    if is_nullish(left) and is_nullish(right):
        return True
    return _strict_equals(left, right)


def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if is_nullish(value):
        return 0 if value is None else math.nan
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                return math.nan
    return math.nan


def _read_member(obj: Any, name: Union[str, int]) -> Any:
    if isinstance(name, str) and name.startswith("_"):
        raise ExpressionError(str(name), "access to underscore-prefixed names is not allowed")
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
        if isinstance(name, int) and str(name) in obj:
            return obj[str(name)]
        return MISSING
    if isinstance(obj, (list, tuple, str)):
        if name == "length":
            return len(obj)
        index: Optional[int] = None
        if isinstance(name, int) and not isinstance(name, bool):
            index = name
        elif isinstance(name, str) and name.isdigit():
            index = int(name)
        if index is not None and 0 <= index < len(obj):
            return obj[index]
        return MISSING
    if isinstance(obj, BaseModel):
        fields = type(obj).model_fields
        if name in fields:
            return getattr(obj, name)
        for field_name, info in fields.items():
            if info.alias == name:
                return getattr(obj, field_name)
        return MISSING
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        if name in {f.name for f in dataclasses.fields(obj)}:
            return getattr(obj, name)
        return MISSING
    return MISSING

# ---------------------------------------------------------------------------
# Allow-listed functions
# ---------------------------------------------------------------------------


def _sha256_hex(value: Any) -> str:
    return hashlib.sha256(to_js_string(value).encode("utf-8")).hexdigest()


def _length(value: Any) -> int:
    if is_nullish(value):
        return 0
    return len(value)


def _join(items: Any, separator: Any = ",") -> str:
    if not isinstance(items, (list, tuple)):
        raise TypeError("join() expects a list")
    sep = "," if is_nullish(separator) else to_js_string(separator)
    return sep.join("" if is_nullish(item) else to_js_string(item) for item in items)


def _coalesce(*values: Any) -> Any:
    for value in values:
        if not is_nullish(value):
            return value
    return None


def _lower(value: Any) -> str:
    return to_js_string(value).lower()


def _upper(value: Any) -> str:
    return to_js_string(value).upper()


class FunctionRegistry:
    """
    The set of functions an expression may call.

    The allow-list is a configuration point: services extend it with
    :meth:`register` or build a fresh registry with :meth:`with_functions`.
    """

    def __init__(self, functions: Optional[Mapping[str, Callable[..., Any]]] = None):
        self._functions: Dict[str, Callable[..., Any]] = dict(functions or {})

    @classmethod
    def default(cls) -> "FunctionRegistry":
        return cls(
            {
                "sha256Hex": _sha256_hex,
                "len": _length,
                "lower": _lower,
                "upper": _upper,
                "String": to_js_string,
                "Number": _to_number,
                "join": _join,
                "coalesce": _coalesce,
            }
        )

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        if name.startswith("_"):
            raise ValueError(f"function names cannot start with '_': {name!r}")
        self._functions[name] = fn

    def with_functions(self, **functions: Callable[..., Any]) -> "FunctionRegistry":
        merged = FunctionRegistry(self._functions)
        for name, fn in functions.items():
            merged.register(name, fn)
        return merged

    def get(self, name: str) -> Optional[Callable[..., Any]]:
        return self._functions.get(name)

    def names(self) -> FrozenSet[str]:
        return frozenset(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_PUNCTUATORS = (
    "===", "!==", "?.", "??", "==", "!=", "&&", "||",
    "?", ":", ".", ",", "(", ")", "[", "]", "{", "}", "!", "-", "+",
)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": MISSING}


@dataclass(frozen=True)
class _Token:
    kind: str  # num | str | tpl | ident | punct | eof
    value: Any
    pos: int


def _read_escape(source: str, i: int) -> Tuple[str, int]:
    """``source[i]`` is the character after a backslash."""
    ch = source[i]
    if ch == "u":
        digits = source[i + 1 : i + 5]
        if len(digits) != 4 or any(c not in "0123456789abcdefABCDEF" for c in digits):
            raise ExpressionError(source, f"bad unicode escape at {i}")
        return chr(int(digits, 16)), i + 5
    return _ESCAPES.get(ch, ch), i + 1


def _scan_template(source: str, start: int) -> Tuple[List[Union[str, Tuple[str, int]]], int]:
    """
    Scans a template literal starting at the opening backtick.

    Returns literal text chunks and ``(expression_source, offset)`` pairs.
    """
    parts: List[Union[str, Tuple[str, int]]] = []
    buf: List[str] = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "`":
            if buf:
                parts.append("".join(buf))
            return parts, i + 1
        if ch == "\\":
            if i + 1 >= len(source):
                break
            text, i = _read_escape(source, i + 1)
            buf.append(text)
            continue
        if ch == "$" and source.startswith("${", i):
            if buf:
                parts.append("".join(buf))
                buf = []
            j = i + 2
            depth = 1
            quote: Optional[str] = None
            while j < len(source) and depth:
                c = source[j]
                if quote:
                    if c == "\\":
                        j += 1
                    elif c == quote:
                        quote = None
                elif c in "'\"`":
                    quote = c
                elif c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                j += 1
            if depth:
                raise ExpressionError(source, f"unterminated interpolation at {i}")
            parts.append((source[i + 2 : j - 1], i + 2))
            i = j
            continue
        buf.append(ch)
        i += 1
    raise ExpressionError(source, f"unterminated template literal at {start}")


def _tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch.isspace():
            i += 1
            continue
        if ch.isdigit() or (ch == "." and i + 1 < n and source[i + 1].isdigit()):
            j = i
            while j < n and source[j].isdigit():
                j += 1
            if j < n and source[j] == "." and j + 1 < n and source[j + 1].isdigit():
                j += 1
                while j < n and source[j].isdigit():
                    j += 1
            if j < n and source[j] in "eE":
                k = j + 1
                if k < n and source[k] in "+-":
                    k += 1
                if k < n and source[k].isdigit():
                    j = k
                    while j < n and source[j].isdigit():
                        j += 1
            text = source[i:j]
            number: Union[int, float] = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(_Token("num", number, i))
            i = j
            continue
        if ch in "'\"":
            j = i + 1
            buf: List[str] = []
            while j < n and source[j] != ch:
                if source[j] == "\\":
                    if j + 1 >= n:
                        break
                    text, j = _read_escape(source, j + 1)
                    buf.append(text)
                    continue
                buf.append(source[j])
                j += 1
            if j >= n:
                raise ExpressionError(source, f"unterminated string at {i}")
            tokens.append(_Token("str", "".join(buf), i))
            i = j + 1
            continue
        if ch == "`":
            parts, i_next = _scan_template(source, i)
            tokens.append(_Token("tpl", parts, i))
            i = i_next
            continue
        if ch.isalpha() or ch in "_$":
            j = i + 1
            while j < n and (source[j].isalnum() or source[j] in "_$"):
                j += 1
            tokens.append(_Token("ident", source[i:j], i))
            i = j
            continue
        for punct in _PUNCTUATORS:
            if source.startswith(punct, i):
                # `a ?.5 : b` is a ternary, not optional chaining
                if punct == "?." and i + 2 < n and source[i + 2].isdigit():
                    continue
                tokens.append(_Token("punct", punct, i))
                i += len(punct)
                break
        else:
            raise ExpressionError(source, f"unexpected character {ch!r} at {i}")
    tokens.append(_Token("eof", None, n))
    return tokens

# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Env:
    scope: Mapping[str, Any]
    functions: FunctionRegistry
    source: str


class Node:
    def evaluate(self, env: _Env) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    def children(self) -> Iterable["Node"]:
        return ()


@dataclass(frozen=True)
class Literal(Node):
    value: Any

    def evaluate(self, env: _Env) -> Any:
        return self.value


@dataclass(frozen=True)
class Name(Node):
    name: str

    def evaluate(self, env: _Env) -> Any:
        if self.name not in env.scope:
            raise ExpressionError(env.source, f"unknown identifier '{self.name}'")
        return env.scope[self.name]


@dataclass(frozen=True)
class Member(Node):
    obj: Node
    prop: Node
    optional: bool = False

    def evaluate(self, env: _Env) -> Any:
        target = self.obj.evaluate(env)
        if is_nullish(target):
            if self.optional:
                return MISSING
            key = self.prop.value if isinstance(self.prop, Literal) else "?"
            raise ExpressionError(env.source, f"cannot read '{key}' of {to_js_string(target)}")
        key = self.prop.evaluate(env)
        if isinstance(key, float) and key.is_integer():
            key = int(key)
        if not isinstance(key, (str, int)) or isinstance(key, bool):
            raise ExpressionError(env.source, f"invalid member key {key!r}")
        return _read_member(target, key)

    def children(self) -> Iterable[Node]:
        return (self.obj, self.prop)


@dataclass(frozen=True)
class Template(Node):
    parts: Tuple[Union[str, Node], ...]

    def evaluate(self, env: _Env) -> Any:
        return "".join(p if isinstance(p, str) else to_js_string(p.evaluate(env)) for p in self.parts)

    def children(self) -> Iterable[Node]:
        return tuple(p for p in self.parts if isinstance(p, Node))


@dataclass(frozen=True)
class ObjectLiteral(Node):
    items: Tuple[Tuple[str, Node], ...]

    def evaluate(self, env: _Env) -> Any:
        out: Dict[str, Any] = {}
        for key, node in self.items:
            value = node.evaluate(env)
            if value is not MISSING:
                out[key] = value
        return out

    def children(self) -> Iterable[Node]:
        return tuple(node for _, node in self.items)


@dataclass(frozen=True)
class ArrayLiteral(Node):
    items: Tuple[Node, ...]

    def evaluate(self, env: _Env) -> Any:
        return [plain(item.evaluate(env)) for item in self.items]

    def children(self) -> Iterable[Node]:
        return self.items


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Node

    def evaluate(self, env: _Env) -> Any:
        value = self.operand.evaluate(env)
        if self.op == "!":
            return not truthy(value)
        return -_to_number(value)

    def children(self) -> Iterable[Node]:
        return (self.operand,)


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, env: _Env) -> Any:
        if self.op == "&&":
            left = self.left.evaluate(env)
            return self.right.evaluate(env) if truthy(left) else left
        if self.op == "||":
            left = self.left.evaluate(env)
            return left if truthy(left) else self.right.evaluate(env)
        if self.op == "??":
            left = self.left.evaluate(env)
            return self.right.evaluate(env) if is_nullish(left) else left

        left = self.left.evaluate(env)
        right = self.right.evaluate(env)
        if self.op == "===":
            return _strict_equals(left, right)
        if self.op == "!==":
            return not _strict_equals(left, right)
        if self.op == "==":
            return _loose_equals(left, right)
        if self.op == "!=":
            return not _loose_equals(left, right)
        if self.op == "+":
            if isinstance(left, str) or isinstance(right, str):
                return to_js_string(left) + to_js_string(right)
            return _to_number(left) + _to_number(right)
        return _to_number(left) - _to_number(right)

    def children(self) -> Iterable[Node]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    then: Node
    otherwise: Node

    def evaluate(self, env: _Env) -> Any:
        if truthy(self.test.evaluate(env)):
            return self.then.evaluate(env)
        return self.otherwise.evaluate(env)

    def children(self) -> Iterable[Node]:
        return (self.test, self.then, self.otherwise)


@dataclass(frozen=True)
class Call(Node):
    callee: str
    args: Tuple[Node, ...]

    def evaluate(self, env: _Env) -> Any:
        fn = env.functions.get(self.callee)
        if fn is None:
            raise ExpressionError(env.source, f"function '{self.callee}' is not allowed")
        values = [plain(arg.evaluate(env)) for arg in self.args]
        try:
            return fn(*values)
        except ExpressionError:
            raise
        except Exception as exc:
            raise ExpressionError(env.source, f"{self.callee}() failed: {exc}") from exc

    def children(self) -> Iterable[Node]:
        return self.args


@dataclass(frozen=True)
class MethodCall(Node):
    obj: Node
    method: str
    args: Tuple[Node, ...]
    optional: bool = False

    def evaluate(self, env: _Env) -> Any:
        target = self.obj.evaluate(env)
        if is_nullish(target):
            if self.optional:
                return MISSING
            raise ExpressionError(env.source, f"cannot call '{self.method}' on {to_js_string(target)}")
        values = [plain(arg.evaluate(env)) for arg in self.args]
        if self.method == "join" and isinstance(target, (list, tuple)):
            return _join(target, *values[:1])
        raise ExpressionError(env.source, f"method '{self.method}' is not allowed")

    def children(self) -> Iterable[Node]:
        return (self.obj,) + self.args

# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, source: str, offset: int = 0, depth: int = 0):
        self.source = source
        self.tokens = _tokenize(source)
        self.index = 0
        self.offset = offset
        self.depth = depth

    # -- token helpers --

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _at(self, value: str) -> bool:
        token = self.current
        return token.kind == "punct" and token.value == value

    def _accept(self, value: str) -> bool:
        if self._at(value):
            self.index += 1
            return True
        return False

    def _expect(self, value: str) -> None:
        if not self._accept(value):
            self._fail(f"expected '{value}'")

    def _fail(self, reason: str) -> None:
        token = self.current
        found = "end of input" if token.kind == "eof" else repr(token.value)
        raise ExpressionError(self.source, f"{reason} at {token.pos + self.offset}, found {found}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise ExpressionError(self.source, "expression nests too deeply")

    # -- grammar --

    def parse(self) -> Node:
        node = self._conditional()
        if self.current.kind != "eof":
            self._fail("unexpected token")
        return node

    def _conditional(self) -> Node:
        self._enter()
        test = self._logical_or()
        if self._accept("?"):
            then = self._conditional()
            self._expect(":")
            otherwise = self._conditional()
            test = Conditional(test, then, otherwise)
        self.depth -= 1
        return test

    def _logical_or(self) -> Node:
        node = self._logical_and()
        while self._at("||") or self._at("??"):
            op = self._advance().value
            node = Binary(op, node, self._logical_and())
        return node

    def _logical_and(self) -> Node:
        node = self._equality()
        while self._accept("&&"):
            node = Binary("&&", node, self._equality())
        return node

    def _equality(self) -> Node:
        node = self._additive()
        while any(self._at(op) for op in ("===", "!==", "==", "!=")):
            op = self._advance().value
            node = Binary(op, node, self._additive())
        return node

    def _additive(self) -> Node:
        node = self._unary()
        while self._at("+") or self._at("-"):
            op = self._advance().value
            node = Binary(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._at("!") or self._at("-"):
            op = self._advance().value
            self._enter()
            operand = self._unary()
            self.depth -= 1
            return Unary(op, operand)
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while True:
            if self._accept("."):
                node = Member(node, Literal(self._identifier()))
            elif self._accept("?."):
                if self._accept("["):
                    node = Member(node, self._conditional(), optional=True)
                    self._expect("]")
                else:
                    name = self._identifier()
                    if self._at("("):
                        node = MethodCall(node, name, self._arguments(), optional=True)
                    else:
                        node = Member(node, Literal(name), optional=True)
            elif self._accept("["):
                node = Member(node, self._conditional())
                self._expect("]")
            elif self._at("("):
                if isinstance(node, Name):
                    node = Call(node.name, self._arguments())
                elif isinstance(node, Member) and isinstance(node.prop, Literal) and isinstance(node.prop.value, str):
                    node = MethodCall(node.obj, node.prop.value, self._arguments(), optional=node.optional)
                else:
                    self._fail("only named functions and methods can be called")
            else:
                return node

    def _arguments(self) -> Tuple[Node, ...]:
        self._expect("(")
        args: List[Node] = []
        while not self._at(")"):
            args.append(self._conditional())
            if not self._accept(","):
                break
        self._expect(")")
        return tuple(args)

    def _identifier(self) -> str:
        token = self.current
        if token.kind != "ident":
            self._fail("expected a property name")
        self.index += 1
        if token.value.startswith("_"):
            raise ExpressionError(self.source, f"access to '{token.value}' is not allowed")
        return token.value

    def _primary(self) -> Node:
        token = self.current
        if token.kind in ("num", "str"):
            self.index += 1
            return Literal(token.value)
        if token.kind == "tpl":
            self.index += 1
            return self._template(token)
        if token.kind == "ident":
            self.index += 1
            if token.value in _KEYWORDS:
                return Literal(_KEYWORDS[token.value])
            if token.value.startswith("_"):
                raise ExpressionError(self.source, f"access to '{token.value}' is not allowed")
            return Name(token.value)
        if self._accept("("):
            node = self._conditional()
            self._expect(")")
            return node
        if self._accept("["):
            items: List[Node] = []
            while not self._at("]"):
                items.append(self._conditional())
                if not self._accept(","):
                    break
            self._expect("]")
            return ArrayLiteral(tuple(items))
        if self._accept("{"):
            return self._object()
        self._fail("unexpected token")
        raise AssertionError("unreachable")

    def _object(self) -> Node:
        items: List[Tuple[str, Node]] = []
        while not self._at("}"):
            token = self.current
            if token.kind == "ident":
                key = token.value
            elif token.kind in ("str", "num"):
                key = to_js_string(token.value)
            else:
                self._fail("expected an object key")
            self.index += 1
            if key.startswith("_"):
                raise ExpressionError(self.source, f"object key '{key}' is not allowed")
            if self._accept(":"):
                items.append((key, self._conditional()))
            elif token.kind == "ident" and key not in _KEYWORDS:
                items.append((key, Name(key)))
            else:
                self._fail("expected ':'")
            if not self._accept(","):
                break
        self._expect("}")
        return ObjectLiteral(tuple(items))

    def _template(self, token: _Token) -> Node:
        parts: List[Union[str, Node]] = []
        for part in token.value:
            if isinstance(part, str):
                parts.append(part)
            else:
                text, offset = part
                sub = _Parser(text, offset=self.offset + offset, depth=self.depth + 1)
                parts.append(sub.parse())
        return Template(tuple(parts))

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Expression:
    """A parsed expression, ready to evaluate against any scope."""
    source: str
    root: Node

    def evaluate(self, scope: Mapping[str, Any], functions: Optional[FunctionRegistry] = None) -> Any:
        env = _Env(scope=scope, functions=functions or DEFAULT_FUNCTIONS, source=self.source)
        try:
            return self.root.evaluate(env)
        except ExpressionError:
            raise
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise ExpressionError(self.source, str(exc)) from exc

    def identifiers(self) -> FrozenSet[str]:
        """Root scope names the expression reads."""
        return frozenset(n.name for n in _walk(self.root) if isinstance(n, Name))

    def functions(self) -> FrozenSet[str]:
        return frozenset(n.callee for n in _walk(self.root) if isinstance(n, Call))

    def check(self, allowed_names: Iterable[str], functions: Optional[FunctionRegistry] = None) -> None:
        """Raises ``ExpressionError`` when the expression references unknown names or functions."""
        registry = functions or DEFAULT_FUNCTIONS
        unknown = sorted(self.identifiers() - frozenset(allowed_names))
        if unknown:
            raise ExpressionError(self.source, f"unknown identifiers {unknown}")
        banned = sorted(f for f in self.functions() if f not in registry)
        if banned:
            raise ExpressionError(self.source, f"functions not allowed {banned}")


def _walk(node: Node) -> Iterable[Node]:
    stack: List[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(current.children())


@lru_cache(maxsize=512)
def parse_expression(source: str) -> Expression:
    """Parses ``source`` (cached); raises ``ExpressionError`` on syntax errors."""
    if not isinstance(source, str) or not source.strip():
        raise ExpressionError(str(source), "expression is empty")
    if len(source) > MAX_EXPRESSION_LENGTH:
        raise ExpressionError(source[:40] + "...", "expression is too long")
    return Expression(source=source, root=_Parser(source).parse())


def evaluate_expression(
    source: str,
    scope: Mapping[str, Any],
    functions: Optional[FunctionRegistry] = None,
) -> Any:
    return parse_expression(source).evaluate(scope, functions)


DEFAULT_FUNCTIONS = FunctionRegistry.default()

__all__ = [
    "DEFAULT_FUNCTIONS",
    "Expression",
    "FunctionRegistry",
    "evaluate_expression",
    "is_nullish",
    "parse_expression",
    "plain",
    "to_js_string",
    "truthy",
]
