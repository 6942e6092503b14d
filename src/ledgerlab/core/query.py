"""
Command-line query terms to predicate expressions.

``args_to_predicate(["Food", "@Grocer"])`` gives
``account =~ /Food/ | payee =~ /Grocer/``. Adjacent terms are OR'ed; ``and``,
``or``, ``not`` and parentheses are passed through as operators.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .errors import ExpressionError
from .values import to_string

TERM_FIELDS = {
    "@": "payee",
    "#": "code",
    "=": "note",
}

_OPERATORS = {
    "and": "&",
    "&": "&",
    "or": "|",
    "|": "|",
    "not": "!",
    "!": "!",
}


def term_to_expr(term: str) -> str:
    """Expression matching one query term."""
    field = "account"
    if term[:1] in TERM_FIELDS:
        field, term = TERM_FIELDS[term[0]], term[1:]
    if not term:
        raise ExpressionError(f"Empty {field} pattern in query")
    pattern = term.replace("/", "\\/")
    return f"{field} =~ /{pattern}/"


def args_to_predicate(args: Iterable[Any]) -> str:
    """
    Compile query terms into predicate expression text.

    Args:
        args: Query terms (values are rendered as text first)

    Returns:
        Expression text, empty when there are no terms

    Raises:
        ExpressionError: On unbalanced parentheses or a dangling operator
    """
    parts: list[str] = []
    depth = 0
    after_operand = False
    for arg in args:
        term = to_string(arg).strip()
        if not term:
            continue

        operator = _OPERATORS.get(term.lower())
        if operator in ("&", "|"):
            if not after_operand:
                raise ExpressionError(f"Query operator '{term}' is missing its left operand")
            parts.append(operator)
            after_operand = False
        elif operator == "!" or term == "(":
            if after_operand:
                parts.append("|")
            parts.append(operator or "(")
            if term == "(":
                depth += 1
            after_operand = False
        elif term == ")":
            depth -= 1
            if depth < 0 or not after_operand:
                raise ExpressionError("Unbalanced ')' in query")
            parts.append(")")
        else:
            if after_operand:
                parts.append("|")
            expr = term_to_expr(term)
            # '!' binds tighter than '=~'
            if parts and parts[-1] == "!":
                expr = f"({expr})"
            parts.append(expr)
            after_operand = True

    if depth:
        raise ExpressionError("Unbalanced '(' in query")
    if parts and not after_operand:
        raise ExpressionError(f"Query ends with a dangling operator '{parts[-1]}'")
    return " ".join(parts)
