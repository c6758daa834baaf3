# src/streamsynth/dsl/expressions.py
"""
Linguagem de expressões escopada do StreamSynth.

Expressões de `filter(...)` e `transform(...)` são interpretadas por este
módulo: tokenizer escrito à mão → parser recursivo descendente → AST
avaliada sobre o evento corrente. Nenhum código hospedeiro é compilado
ou executado.

Sintaxe suportada:
    - variável única `event`; qualquer outro identificador livre é erro
      de compilação, exceto nomes de função da whitelist
    - literais: inteiros, floats, strings ('...' ou "..."), true, false, null
    - arrays `[a, b, ...xs]` e objetos `{ k: v, "k 2": v, event, ...obj }`
    - acesso: `a.b`, `a["b"]`, `a[0]` (chave ausente → null)
    - operadores, do menor para o maior nível de precedência:
          ?:   ||   &&   == != === !==   < <= > >=   + -   * / %   ! - + (unários)

Semântica:
    - `&&` / `||` fazem curto-circuito e devolvem um dos operandos
    - comparações relacionais envolvendo null são falsas
    - aritmética só entre números (exceto string + string)
    - divisão/módulo por zero, tipos incompatíveis e acesso a membro de
      null ou de não-container levantam ExpressionEvaluationError
    - truthiness: null, false, 0, "" são falsos; o resto é verdadeiro

Funções: lower, upper, len, abs, round, min, max, str, number, now.

Limites explícitos:
    - Sem atribuição, laços, lambdas ou chamadas de método
    - Sem acesso a atributos Python; só chaves de mapping e índices de lista
"""

from __future__ import annotations

import json
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from streamsynth.core.exceptions import ExpressionEvaluationError, ExpressionSyntaxError

EVENT_VARIABLE = "event"

# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

NUMBER = "number"
STRING = "string"
IDENT = "ident"
PUNCT = "punct"
EOF = "eof"

_NUMBER_RE = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

# Mais longos primeiro: a primeira correspondência vence.
_PUNCTUATORS = (
    "===", "!==", "...",
    "==", "!=", "<=", ">=", "&&", "||",
    "<", ">", "+", "-", "*", "/", "%", "!", "?", ":",
    ".", ",", "(", ")", "[", "]", "{", "}",
)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "0": "\0",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    position: int


def _read_string(text: str, start: int) -> Tuple[str, int]:
    quote = text[start]
    out: List[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == quote:
            return "".join(out), i + 1
        if ch == "\\":
            i += 1
            if i >= len(text):
                break
            esc = text[i]
            if esc == "u":
                digits = text[i + 1 : i + 5]
                if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise ExpressionSyntaxError("Invalid \\u escape in string", position=i - 1)
                out.append(chr(int(digits, 16)))
                i += 5
                continue
            out.append(_ESCAPES.get(esc, esc))
            i += 1
            continue
        if ch == "\n":
            break
        out.append(ch)
        i += 1
    raise ExpressionSyntaxError("Unterminated string literal", position=start)


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue

        if ch.isdigit() or (ch == "." and i + 1 < n and text[i + 1].isdigit()):
            m = _NUMBER_RE.match(text, i)
            assert m is not None
            raw = m.group()
            value: Any = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(Token(NUMBER, value, i))
            i = m.end()
            continue

        m = _IDENT_RE.match(text, i)
        if m:
            tokens.append(Token(IDENT, m.group(), i))
            i = m.end()
            continue

        if ch in "\"'":
            value, end = _read_string(text, i)
            tokens.append(Token(STRING, value, i))
            i = end
            continue

        for punct in _PUNCTUATORS:
            if text.startswith(punct, i):
                tokens.append(Token(PUNCT, punct, i))
                i += len(punct)
                break
        else:
            raise ExpressionSyntaxError(f"Unexpected character {ch!r}", position=i)

    tokens.append(Token(EOF, None, n))
    return tokens


# ---------------------------------------------------------------------------
# Helpers de semântica
# ---------------------------------------------------------------------------

def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right) and not (
        isinstance(left, Mapping) and isinstance(right, Mapping)
    ):
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    if strict_equals(left, right):
        return True
    if left is None or right is None:
        return False
    if isinstance(left, bool):
        return loose_equals(int(left), right)
    if isinstance(right, bool):
        return loose_equals(left, int(right))
    if is_number(left) and isinstance(right, str):
        return _parse_number(right) == left
    if isinstance(left, str) and is_number(right):
        return _parse_number(left) == right
    return False


def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text.strip()) if text.strip() else 0
    except ValueError:
        return None


def _require_numbers(op: str, left: Any, right: Any) -> None:
    if not (is_number(left) and is_number(right)):
        raise ExpressionEvaluationError(
            f"Operator {op!r} requires numbers, got {_type_name(left)} and {_type_name(right)}",
            details={"operator": op},
        )


def _integral(value: float) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _arith(op: str, left: Any, right: Any) -> Any:
    if op == "+" and isinstance(left, str) and isinstance(right, str):
        return left + right
    _require_numbers(op, left, right)
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise ExpressionEvaluationError(f"Division by zero in {op!r}", details={"operator": op})
    if op == "/":
        result = left / right
        if isinstance(left, int) and isinstance(right, int):
            return _integral(result)
        return result
    # `%` segue o sinal do dividendo
    if isinstance(left, int) and isinstance(right, int):
        remainder = abs(left) % abs(right)
        return -remainder if left < 0 else remainder
    return math.fmod(left, right)


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    comparable = (is_number(left) and is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise ExpressionEvaluationError(
            f"Cannot compare {_type_name(left)} {op} {_type_name(right)}",
            details={"operator": op},
        )
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def get_member(obj: Any, key: Any) -> Any:
    if obj is None:
        raise ExpressionEvaluationError(f"Cannot read property {key!r} of null")
    if isinstance(obj, Mapping):
        if is_number(key):
            key = str(_integral(key))
        return obj.get(key)
    if isinstance(obj, (list, tuple, str)):
        if key == "length":
            return len(obj)
        if is_number(key) and float(key).is_integer():
            index = int(key)
            return obj[index] if 0 <= index < len(obj) else None
        return None
    raise ExpressionEvaluationError(
        f"Cannot read property {key!r} of {_type_name(obj)}",
        details={"type": _type_name(obj)},
    )


def to_display_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return str(_integral(value))
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Funções embutidas
# ---------------------------------------------------------------------------

def _fn_lower(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ExpressionEvaluationError(f"lower() expects a string, got {_type_name(value)}")
    return value.lower()


def _fn_upper(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ExpressionEvaluationError(f"upper() expects a string, got {_type_name(value)}")
    return value.upper()


def _fn_len(value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    raise ExpressionEvaluationError(f"len() expects a string, array or object, got {_type_name(value)}")


def _fn_abs(value: Any) -> Any:
    if not is_number(value):
        raise ExpressionEvaluationError(f"abs() expects a number, got {_type_name(value)}")
    return abs(value)


def _fn_round(value: Any, digits: Any = 0) -> Any:
    if not is_number(value) or not is_number(digits) or not float(digits).is_integer():
        raise ExpressionEvaluationError("round() expects a number and an integer digit count")
    factor = 10 ** int(digits)
    result = math.floor(value * factor + 0.5) / factor
    return int(result) if int(digits) <= 0 else result


def _numbers_of(name: str, args: Sequence[Any]) -> Sequence[Any]:
    values = args[0] if len(args) == 1 and isinstance(args[0], (list, tuple)) else args
    if not values or not all(is_number(v) for v in values):
        raise ExpressionEvaluationError(f"{name}() expects one or more numbers")
    return values


def _fn_min(*args: Any) -> Any:
    return min(_numbers_of("min", args))


def _fn_max(*args: Any) -> Any:
    return max(_numbers_of("max", args))


def _fn_number(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if isinstance(value, str):
        parsed = _parse_number(value)
        if parsed is None:
            raise ExpressionEvaluationError(f"number() cannot parse {value!r}")
        return _integral(parsed)
    raise ExpressionEvaluationError(f"number() cannot convert {_type_name(value)}")


def _fn_now() -> int:
    return int(time.time() * 1000)


# nome → (função, aridade mínima, aridade máxima ou None para variádica)
FUNCTIONS: Dict[str, Tuple[Callable[..., Any], int, Optional[int]]] = {
    "lower": (_fn_lower, 1, 1),
    "upper": (_fn_upper, 1, 1),
    "len": (_fn_len, 1, 1),
    "abs": (_fn_abs, 1, 1),
    "round": (_fn_round, 1, 2),
    "min": (_fn_min, 1, None),
    "max": (_fn_max, 1, None),
    "str": (to_display_string, 1, 1),
    "number": (_fn_number, 1, 1),
    "now": (_fn_now, 0, 0),
}

_KEYWORDS = {"true": True, "false": False, "null": None}


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

class Node:
    def evaluate(self, event: Any) -> Any:  # pragma: no cover
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Node):
    value: Any

    def evaluate(self, event: Any) -> Any:
        return self.value


@dataclass(frozen=True)
class EventRef(Node):
    def evaluate(self, event: Any) -> Any:
        return event


@dataclass(frozen=True)
class Member(Node):
    target: Node
    key: Node

    def evaluate(self, event: Any) -> Any:
        return get_member(self.target.evaluate(event), self.key.evaluate(event))


@dataclass(frozen=True)
class Call(Node):
    name: str
    args: Tuple[Node, ...]

    def evaluate(self, event: Any) -> Any:
        fn = FUNCTIONS[self.name][0]
        return fn(*(arg.evaluate(event) for arg in self.args))


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Node

    def evaluate(self, event: Any) -> Any:
        value = self.operand.evaluate(event)
        if self.op == "!":
            return not truthy(value)
        if not is_number(value):
            raise ExpressionEvaluationError(
                f"Unary {self.op!r} requires a number, got {_type_name(value)}"
            )
        return -value if self.op == "-" else value


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, event: Any) -> Any:
        left = self.left.evaluate(event)
        right = self.right.evaluate(event)
        op = self.op
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)
        if op in ("<", "<=", ">", ">="):
            return _compare(op, left, right)
        return _arith(op, left, right)


@dataclass(frozen=True)
class Logical(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, event: Any) -> Any:
        left = self.left.evaluate(event)
        if self.op == "&&":
            return self.right.evaluate(event) if truthy(left) else left
        return left if truthy(left) else self.right.evaluate(event)


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    then: Node
    otherwise: Node

    def evaluate(self, event: Any) -> Any:
        if truthy(self.test.evaluate(event)):
            return self.then.evaluate(event)
        return self.otherwise.evaluate(event)


@dataclass(frozen=True)
class ArrayLiteral(Node):
    # (é_spread, nó)
    items: Tuple[Tuple[bool, Node], ...]

    def evaluate(self, event: Any) -> Any:
        out: List[Any] = []
        for spread, node in self.items:
            value = node.evaluate(event)
            if not spread:
                out.append(value)
            elif isinstance(value, (list, tuple)):
                out.extend(value)
            else:
                raise ExpressionEvaluationError(f"Cannot spread {_type_name(value)} into an array")
        return out


@dataclass(frozen=True)
class ObjectLiteral(Node):
    # (chave ou None para spread, nó)
    entries: Tuple[Tuple[Optional[str], Node], ...]

    def evaluate(self, event: Any) -> Any:
        out: Dict[str, Any] = {}
        for key, node in self.entries:
            value = node.evaluate(event)
            if key is not None:
                out[key] = value
            elif value is None:
                continue
            elif isinstance(value, Mapping):
                out.update(value)
            else:
                raise ExpressionEvaluationError(f"Cannot spread {_type_name(value)} into an object")
        return out


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

_EQUALITY = ("==", "!=", "===", "!==")
_RELATIONAL = ("<", "<=", ">", ">=")

# Parênteses, colchetes, chaves, chamadas e operadores unários aninhados.
MAX_NESTING_DEPTH = 50
# Altura da AST; cadeias longas como `1 + 1 + ... + 1` crescem aqui.
MAX_AST_HEIGHT = 200


def _children(node: Node) -> Tuple[Node, ...]:
    if isinstance(node, Member):
        return (node.target, node.key)
    if isinstance(node, Call):
        return node.args
    if isinstance(node, Unary):
        return (node.operand,)
    if isinstance(node, (Binary, Logical)):
        return (node.left, node.right)
    if isinstance(node, Conditional):
        return (node.test, node.then, node.otherwise)
    if isinstance(node, ArrayLiteral):
        return tuple(child for _, child in node.items)
    if isinstance(node, ObjectLiteral):
        return tuple(child for _, child in node.entries)
    return ()


def ast_height(node: Node) -> int:
    """Altura da AST, calculada sem recursão."""
    height = 0
    stack = [(node, 1)]
    while stack:
        current, level = stack.pop()
        height = max(height, level)
        stack.extend((child, level + 1) for child in _children(current))
    return height


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != EOF:
            self.pos += 1
        return token

    def _at(self, *puncts: str) -> bool:
        return self.current.kind == PUNCT and self.current.value in puncts

    def _expect(self, punct: str) -> Token:
        if not self._at(punct):
            self._fail(f"Expected {punct!r}")
        return self._advance()

    def _fail(self, message: str) -> None:
        token = self.current
        found = "end of expression" if token.kind == EOF else repr(token.value)
        raise ExpressionSyntaxError(
            f"{message} at position {token.position}, found {found}",
            details={"expression": self.text},
            position=token.position,
        )

    def _descend(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            self._fail(f"Expression nested too deeply (max {MAX_NESTING_DEPTH} levels)")

    def parse(self) -> Node:
        if self.current.kind == EOF:
            self._fail("Empty expression")
        node = self.expression()
        if self.current.kind != EOF:
            self._fail("Unexpected token")
        if ast_height(node) > MAX_AST_HEIGHT:
            raise ExpressionSyntaxError(
                f"Expression too long to evaluate (max {MAX_AST_HEIGHT} nested operations)",
                details={"expression": self.text},
                position=0,
            )
        return node

    def expression(self) -> Node:
        self._descend()
        try:
            return self._conditional()
        finally:
            self.depth -= 1

    def _conditional(self) -> Node:
        test = self.logical_or()
        if self._at("?"):
            self._advance()
            then = self.expression()
            self._expect(":")
            otherwise = self.expression()
            return Conditional(test, then, otherwise)
        return test

    def logical_or(self) -> Node:
        node = self.logical_and()
        while self._at("||"):
            self._advance()
            node = Logical("||", node, self.logical_and())
        return node

    def logical_and(self) -> Node:
        node = self.equality()
        while self._at("&&"):
            self._advance()
            node = Logical("&&", node, self.equality())
        return node

    def equality(self) -> Node:
        node = self.relational()
        while self._at(*_EQUALITY):
            op = self._advance().value
            node = Binary(op, node, self.relational())
        return node

    def relational(self) -> Node:
        node = self.additive()
        while self._at(*_RELATIONAL):
            op = self._advance().value
            node = Binary(op, node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.multiplicative()
        while self._at("+", "-"):
            op = self._advance().value
            node = Binary(op, node, self.multiplicative())
        return node

    def multiplicative(self) -> Node:
        node = self.unary()
        while self._at("*", "/", "%"):
            op = self._advance().value
            node = Binary(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self._at("!", "-", "+"):
            op = self._advance().value
            self._descend()
            try:
                return Unary(op, self.unary())
            finally:
                self.depth -= 1
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while True:
            if self._at("."):
                self._advance()
                if self.current.kind != IDENT:
                    self._fail("Expected property name after '.'")
                node = Member(node, Literal(self._advance().value))
            elif self._at("["):
                self._advance()
                key = self.expression()
                self._expect("]")
                node = Member(node, key)
            else:
                return node

    def primary(self) -> Node:
        token = self.current
        if token.kind in (NUMBER, STRING):
            self._advance()
            return Literal(token.value)

        if token.kind == IDENT:
            name = token.value
            if name in _KEYWORDS:
                self._advance()
                return Literal(_KEYWORDS[name])
            if name == EVENT_VARIABLE:
                self._advance()
                return EventRef()
            if name in FUNCTIONS:
                self._advance()
                return self._call(name, token)
            self._fail(f"Unknown identifier {name!r} (only {EVENT_VARIABLE!r} is in scope)")

        if self._at("("):
            self._advance()
            node = self.expression()
            self._expect(")")
            return node
        if self._at("["):
            return self._array()
        if self._at("{"):
            return self._object()

        self._fail("Unexpected token")
        raise AssertionError("unreachable")

    def _call(self, name: str, token: Token) -> Node:
        if not self._at("("):
            self._fail(f"Function {name!r} must be called")
        self._advance()
        args: List[Node] = []
        while not self._at(")"):
            args.append(self.expression())
            if not self._at(","):
                break
            self._advance()
        self._expect(")")

        _, min_args, max_args = FUNCTIONS[name]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise ExpressionSyntaxError(
                f"Function {name!r} called with {len(args)} argument(s)",
                details={"expression": self.text, "function": name},
                position=token.position,
            )
        return Call(name, tuple(args))

    def _array(self) -> Node:
        self._expect("[")
        items: List[Tuple[bool, Node]] = []
        while not self._at("]"):
            spread = self._at("...")
            if spread:
                self._advance()
            items.append((spread, self.expression()))
            if not self._at(","):
                break
            self._advance()
        self._expect("]")
        return ArrayLiteral(tuple(items))

    def _object(self) -> Node:
        self._expect("{")
        entries: List[Tuple[Optional[str], Node]] = []
        while not self._at("}"):
            if self._at("..."):
                self._advance()
                entries.append((None, self.expression()))
            else:
                token = self.current
                if token.kind == IDENT:
                    key = token.value
                elif token.kind == STRING:
                    key = token.value
                elif token.kind == NUMBER:
                    key = str(_integral(token.value))
                else:
                    self._fail("Expected property key")
                self._advance()

                if self._at(":"):
                    self._advance()
                    entries.append((key, self.expression()))
                elif token.kind == IDENT and key == EVENT_VARIABLE:
                    entries.append((key, EventRef()))
                else:
                    self._fail(f"Expected ':' after key {key!r}")
            if not self._at(","):
                break
            self._advance()
        self._expect("}")
        return ObjectLiteral(tuple(entries))


# ---------------------------------------------------------------------------
# API pública
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Expression:
    """Expressão compilada: texto original + AST."""

    source: str
    node: Node

    def evaluate(self, event: Any) -> Any:
        try:
            return self.node.evaluate(event)
        except ExpressionEvaluationError as e:
            if "expression" not in e.details:
                e.details["expression"] = self.source
            raise

    def __call__(self, event: Any) -> Any:
        return self.evaluate(event)

    def as_predicate(self) -> Callable[[Any], bool]:
        def predicate(event: Any) -> bool:
            return truthy(self.evaluate(event))

        return predicate


def compile_expression(text: str) -> Expression:
    """Compila `text` em uma Expression.

    Raises:
        ExpressionSyntaxError: texto malformado, identificador fora de
            escopo, função com aridade inválida ou aninhamento excessivo.
    """
    if not isinstance(text, str):
        raise ExpressionSyntaxError("Expression must be a string", details={"expression": text})
    try:
        node = _Parser(text).parse()
    except RecursionError as e:
        raise ExpressionSyntaxError(
            "Expression nested too deeply",
            details={"expression": text},
            position=0,
        ) from e
    return Expression(source=text.strip(), node=node)
