"""
Error classes for LedgerLab.

This module defines the exception hierarchy raised by the reporting core.
Everything that can go wrong while resolving a name, evaluating an expression
or running a report is an ``EvaluationError``; problems found while building a
journal are plain ``ValueError`` subclasses.
"""

from __future__ import annotations


class EvaluationError(Exception):
    """
    Error raised while evaluating an expression or running a report.

    An evaluation error aborts the single function or report invocation that
    triggered it. Callers higher up the stack may attach context lines (the
    expression being evaluated, the command being run) with ``add_context``;
    the rendered message lists the context first, innermost last.

    **Example Usage:**
        ```python
        from ledgerlab.core.errors import EvaluationError

        try:
            report.lookup("cmd_balance")(CallArgs(["Food"]))
        except EvaluationError as e:
            print(f"Error: {e}")
        ```
    """

    def __init__(self, message: str):
        self.message = message
        self.context: list[str] = []
        super().__init__(message)

    def add_context(self, line: str) -> EvaluationError:
        """Prepend a context line and return the error for re-raising."""
        self.context.insert(0, line)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return "\n".join([*self.context, self.message])


class UndefinedIdentifierError(EvaluationError):
    """Raised when a name cannot be resolved at any precedence level."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown identifier '{name}'")


class ExpressionError(EvaluationError):
    """Raised for malformed or ambiguous expressions and predicates."""


class ValueTypeError(EvaluationError):
    """
    Raised when a value cannot be converted to the kind an operation needs.

    **Common Causes:**
    - Text where an amount is required (``quantity('abc')``)
    - Adding a date to an amount
    - Ordering values of unrelated kinds in a sort key
    """


class AccountTreeError(EvaluationError):
    """Raised when the account tree violates its structural invariants."""


class OptionValueError(EvaluationError):
    """Raised when an option cell rejects an assigned value."""

    def __init__(self, option: str, value: object, reason: str):
        self.option = option
        self.value = value
        super().__init__(f"Invalid value {value!r} for option '{option}': {reason}")


class CommodityError(EvaluationError):
    """Raised when market valuation cannot find a conversion path."""


class UnbalancedEntryError(ValueError):
    """Raised when an entry's postings do not sum to zero per commodity."""


class JournalLoadError(ValueError):
    """Raised when a journal source cannot be parsed or validated."""
