"""
Compact value-expression language.

Expressions are compiled once into a small tree of nodes and evaluated
against an explicit ``Scope``; the compiled tree holds no evaluation state, so
one expression can be shared between posting-at-a-time and account-at-a-time
evaluation.

Syntax summary:

- literals: ``12.5``, ``'text'``, ``/regex/`` (case-insensitive), ``{$10}``,
  ``[2024-01-31]``, ``true``, ``false``
- identifiers resolved through the scope chain, calls ``f(a, b)`` and method
  calls ``x.f(a)`` (``x`` becomes argument 0)
- ``-``, ``!``/``not``, ``*``, ``/``, ``+``, ``-``, ``== != < <= > >=``,
  ``=~``/``!~``, ``&``/``and``, ``|``/``or``, ``a ? b : c`` and comma
  sequences
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .amount import Amount, Balance
from .errors import EvaluationError, ExpressionError, UndefinedIdentifierError, ValueTypeError
from .scope import CallArgs, Scope
from .values import (
    add_values,
    compare_values,
    is_number,
    kind_of,
    negate,
    to_boolean,
    to_date,
    to_string,
)


# --- nodes -----------------------------------------------------------------


@dataclass(frozen=True)
class Node:
    def evaluate(self, scope: Scope) -> Any:
        raise NotImplementedError

    def dump(self, depth: int = 0) -> list[str]:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Node):
    value: Any

    def evaluate(self, scope: Scope) -> Any:
        return self.value

    def dump(self, depth: int = 0) -> list[str]:
        if isinstance(self.value, re.Pattern):
            shown = f"/{self.value.pattern}/"
        else:
            shown = to_string(self.value)
        return [f"{'  ' * depth}VALUE: {shown} ({kind_of(self.value)})"]


@dataclass(frozen=True)
class Identifier(Node):
    name: str

    def evaluate(self, scope: Scope) -> Any:
        target = scope.lookup(self.name)
        if target is None:
            raise UndefinedIdentifierError(self.name)
        if callable(target):
            return target(CallArgs((), scope))
        return target

    def dump(self, depth: int = 0) -> list[str]:
        return [f"{'  ' * depth}IDENT: {self.name}"]


@dataclass(frozen=True)
class Call(Node):
    name: str
    args: tuple[Node, ...]

    def evaluate(self, scope: Scope) -> Any:
        target = scope.lookup(self.name)
        if target is None:
            raise UndefinedIdentifierError(self.name)
        if not callable(target):
            raise ExpressionError(f"'{self.name}' is not a function")
        values = [arg.evaluate(scope) for arg in self.args]
        return target(CallArgs(values, scope))

    def dump(self, depth: int = 0) -> list[str]:
        lines = [f"{'  ' * depth}CALL: {self.name}"]
        for arg in self.args:
            lines.extend(arg.dump(depth + 1))
        return lines


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Node

    def evaluate(self, scope: Scope) -> Any:
        value = self.operand.evaluate(scope)
        if self.op == "-":
            return negate(value)
        return not to_boolean(value)

    def dump(self, depth: int = 0) -> list[str]:
        name = "NEG" if self.op == "-" else "NOT"
        return [f"{'  ' * depth}{name}", *self.operand.dump(depth + 1)]


_BINARY_NAMES = {
    "+": "ADD",
    "-": "SUB",
    "*": "MUL",
    "/": "DIV",
    "==": "EQ",
    "!=": "NEQ",
    "<": "LT",
    "<=": "LTE",
    ">": "GT",
    ">=": "GTE",
    "=~": "MATCH",
    "!~": "NMATCH",
    "&": "AND",
    "|": "OR",
}


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, scope: Scope) -> Any:
        if self.op == "&":
            return to_boolean(self.left.evaluate(scope)) and to_boolean(self.right.evaluate(scope))
        if self.op == "|":
            return to_boolean(self.left.evaluate(scope)) or to_boolean(self.right.evaluate(scope))

        left = self.left.evaluate(scope)
        right = self.right.evaluate(scope)
        if self.op in ("=~", "!~"):
            matched = _match(left, right)
            return matched if self.op == "=~" else not matched
        if self.op in ("+", "-", "*", "/"):
            return _arithmetic(self.op, left, right)
        return _compare(self.op, left, right)

    def dump(self, depth: int = 0) -> list[str]:
        return [
            f"{'  ' * depth}{_BINARY_NAMES[self.op]}",
            *self.left.dump(depth + 1),
            *self.right.dump(depth + 1),
        ]


@dataclass(frozen=True)
class Ternary(Node):
    condition: Node
    if_true: Node
    if_false: Node

    def evaluate(self, scope: Scope) -> Any:
        if to_boolean(self.condition.evaluate(scope)):
            return self.if_true.evaluate(scope)
        return self.if_false.evaluate(scope)

    def dump(self, depth: int = 0) -> list[str]:
        return [
            f"{'  ' * depth}QUERY",
            *self.condition.dump(depth + 1),
            *self.if_true.dump(depth + 1),
            *self.if_false.dump(depth + 1),
        ]


@dataclass(frozen=True)
class SequenceNode(Node):
    items: tuple[Node, ...]

    def evaluate(self, scope: Scope) -> Any:
        return tuple(item.evaluate(scope) for item in self.items)

    def dump(self, depth: int = 0) -> list[str]:
        lines = [f"{'  ' * depth}SEQ"]
        for item in self.items:
            lines.extend(item.dump(depth + 1))
        return lines


def _match(left: Any, right: Any) -> bool:
    if isinstance(right, str):
        right = re.compile(right, re.IGNORECASE)
    if not isinstance(right, re.Pattern):
        raise ValueTypeError(f"Right side of a match must be a regex, got {kind_of(right)}")
    return right.search(to_string(left)) is not None


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+":
        return add_values(left, right)
    if op == "-":
        return add_values(left, negate(right))

    money = (Amount, Balance)
    if isinstance(left, money) and is_number(right):
        right = Amount(Decimal(right))
    elif isinstance(right, money) and is_number(left):
        left = Amount(Decimal(left))
    elif left is None or right is None:
        left = Amount(0) if left is None else left
        right = Amount(0) if right is None else right

    if op == "*":
        if isinstance(right, Balance) and not isinstance(left, Balance):
            left, right = right, left
        try:
            return left * right
        except TypeError as e:
            raise ValueTypeError(f"Cannot multiply {kind_of(left)} by {kind_of(right)}") from e

    if isinstance(right, Balance):
        single = right.simplified()
        if isinstance(single, Balance):
            raise ValueTypeError("Cannot divide by a balance with several commodities")
        right = single
    if (is_number(right) and right == 0) or (isinstance(right, Amount) and right.is_zero()):
        raise ValueTypeError("Divide by zero")
    try:
        return left / right
    except TypeError as e:
        raise ValueTypeError(f"Cannot divide {kind_of(left)} by {kind_of(right)}") from e


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return _equal(left, right)
    if op == "!=":
        return not _equal(left, right)
    result = compare_values(left, right)
    if op == "<":
        return result < 0
    if op == "<=":
        return result <= 0
    if op == ">":
        return result > 0
    return result >= 0


def _equal(left: Any, right: Any) -> bool:
    # A bare number equals an amount of the same quantity in any commodity
    if isinstance(left, (Amount, Balance)) and is_number(right):
        return compare_values(left, right) == 0
    if isinstance(right, (Amount, Balance)) and is_number(left):
        return compare_values(left, right) == 0
    return left == right


# --- tokenizer -------------------------------------------------------------


_TOKEN_RE = re.compile(
    r"""
    (?P<number>\d+(?:\.\d+)?)
   |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
   |(?P<amount>\{[^}]*\})
   |(?P<date>\[[^\]]*\])
   |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
   |(?P<op>==|!=|<=|>=|=~|!~|&&|\|\||[-+*/!<>=&|?:,().])
    """,
    re.VERBOSE,
)

_KEYWORD_OPS = {"and": "&", "or": "|", "not": "!"}
_ESCAPES = {"n": "\n", "t": "\t"}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m[1], m[1]), body, flags=re.DOTALL)


def tokenize(source: str) -> list[Token]:
    """
    Split an expression into tokens.

    A ``/`` where an operand is expected starts a regex literal; anywhere else
    it is division.

    Raises:
        ExpressionError: On unterminated literals or unexpected characters
    """
    tokens: list[Token] = []
    position = 0
    while position < len(source):
        if source[position].isspace():
            position += 1
            continue

        expects_operand = not tokens or (
            tokens[-1].kind == "op" and tokens[-1].text not in (")",)
        )
        if source[position] == "/" and expects_operand:
            end = position + 1
            while end < len(source) and source[end] != "/":
                end += 2 if source[end] == "\\" else 1
            if end >= len(source):
                raise ExpressionError(f"Unterminated regex in '{source}'")
            tokens.append(Token("regex", source[position + 1 : end], position))
            position = end + 1
            continue

        match = _TOKEN_RE.match(source, position)
        if match is None:
            raise ExpressionError(
                f"Unexpected character '{source[position]}' at position {position} in '{source}'"
            )
        kind = match.lastgroup
        text = match[kind]
        if kind == "ident" and text in _KEYWORD_OPS:
            kind, text = "op", _KEYWORD_OPS[text]
        elif kind == "op" and text in ("&&", "||"):
            text = text[0]
        tokens.append(Token(kind, text, position))
        position = match.end()
    return tokens


# --- parser ----------------------------------------------------------------


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    def peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def accept(self, *ops: str) -> str | None:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text in ops:
            self.index += 1
            return token.text
        return None

    def expect(self, op: str) -> None:
        if self.accept(op) is None:
            token = self.peek()
            found = f"'{token.text}'" if token else "end of expression"
            raise ExpressionError(f"Expected '{op}', found {found} in '{self.source}'")

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        node = self.sequence()
        token = self.peek()
        if token is not None:
            raise ExpressionError(f"Unexpected '{token.text}' in '{self.source}'")
        return node

    def sequence(self) -> Node:
        items = [self.ternary()]
        while self.accept(","):
            items.append(self.ternary())
        return items[0] if len(items) == 1 else SequenceNode(tuple(items))

    def ternary(self) -> Node:
        condition = self.or_expr()
        if self.accept("?"):
            if_true = self.ternary()
            self.expect(":")
            if_false = self.ternary()
            return Ternary(condition, if_true, if_false)
        return condition

    def or_expr(self) -> Node:
        node = self.and_expr()
        while self.accept("|"):
            node = Binary("|", node, self.and_expr())
        return node

    def and_expr(self) -> Node:
        node = self.comparison()
        while self.accept("&"):
            node = Binary("&", node, self.comparison())
        return node

    def comparison(self) -> Node:
        node = self.additive()
        op = self.accept("==", "!=", "<", "<=", ">", ">=", "=~", "!~", "=")
        if op is not None:
            node = Binary("==" if op == "=" else op, node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.multiplicative()
        while (op := self.accept("+", "-")) is not None:
            node = Binary(op, node, self.multiplicative())
        return node

    def multiplicative(self) -> Node:
        node = self.unary()
        while (op := self.accept("*", "/")) is not None:
            node = Binary(op, node, self.unary())
        return node

    def unary(self) -> Node:
        op = self.accept("-", "!")
        if op is not None:
            operand = self.unary()
            if op == "-" and isinstance(operand, Literal) and is_number(operand.value):
                return Literal(-operand.value)
            return Unary(op, operand)
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while True:
            if isinstance(node, Identifier) and self.accept("("):
                node = Call(node.name, self.arguments())
            elif self.accept("."):
                token = self.peek()
                if token is None or token.kind != "ident":
                    raise ExpressionError(f"Expected a method name after '.' in '{self.source}'")
                self.index += 1
                args: tuple[Node, ...] = ()
                if self.accept("("):
                    args = self.arguments()
                node = Call(token.text, (node, *args))
            else:
                return node

    def arguments(self) -> tuple[Node, ...]:
        if self.accept(")"):
            return ()
        args = [self.ternary()]
        while self.accept(","):
            args.append(self.ternary())
        self.expect(")")
        return tuple(args)

    def primary(self) -> Node:
        token = self.peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression '{self.source}'")
        self.index += 1

        if token.kind == "number":
            return Literal(Decimal(token.text))
        if token.kind == "string":
            return Literal(_unescape(token.text[1:-1]))
        if token.kind == "regex":
            try:
                return Literal(re.compile(token.text, re.IGNORECASE))
            except re.error as e:
                raise ExpressionError(f"Invalid regex /{token.text}/: {e}") from e
        if token.kind == "amount":
            return Literal(Amount.parse(token.text[1:-1]))
        if token.kind == "date":
            return Literal(to_date(token.text[1:-1].strip()))
        if token.kind == "ident":
            if token.text in ("true", "false"):
                return Literal(token.text == "true")
            return Identifier(token.text)
        if token.text == "(":
            node = self.sequence()
            self.expect(")")
            return node
        raise ExpressionError(f"Unexpected '{token.text}' in '{self.source}'")


def parse_expression(source: str) -> Node:
    """Compile expression text into a node tree."""
    return _Parser(source).parse()


class Expr:
    """
    A value expression: source text plus its lazily compiled tree.

    **Example Usage:**
        ```python
        expr = Expr("amount * 2")
        expr.calc(PostingScope(report, posting))
        ```
    """

    def __init__(self, source: str | Expr | None = None):
        if isinstance(source, Expr):
            source = source.source
        self.source = (source or "").strip()
        self._root: Node | None = None

    def compile(self) -> Expr:
        """
        Compile now, so malformed text fails before any item is evaluated.

        Raises:
            ExpressionError: If the text is not a valid expression
        """
        if self._root is None and self.source:
            self._root = parse_expression(self.source)
        return self

    @property
    def root(self) -> Node:
        self.compile()
        if self._root is None:
            raise ExpressionError("Empty expression")
        return self._root

    def calc(self, scope: Scope) -> Any:
        try:
            return self.root.evaluate(scope)
        except EvaluationError as e:
            raise e.add_context(f"While evaluating value expression: {self.source}")

    def dump(self) -> str:
        return "\n".join(self.root.dump())

    def __bool__(self) -> bool:
        return bool(self.source)

    def __str__(self) -> str:
        return self.source

    def __repr__(self) -> str:
        return f"Expr({self.source!r})"


def evaluate_predicate(expr: Expr, scope: Scope) -> bool:
    """Evaluate ``expr`` as a predicate (an empty expression matches everything)."""
    if not expr:
        return True
    return to_boolean(expr.calc(scope))
