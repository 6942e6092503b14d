"""
Value conversions, comparison and printing.

A value is one of: ``Amount``, ``Balance``, ``str``, ``date``, ``bool``, a tuple
of values, or a bare number (``int``/``Decimal``). ``None`` stands for the
absent value and behaves as zero or empty text. Conversions between kinds are
explicit and raise ``ValueTypeError`` when they make no sense.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from functools import total_ordering
from typing import Any, Union

from .amount import Amount, Balance, KeepDetails
from .errors import ValueTypeError

Value = Union[Amount, Balance, str, date, bool, tuple, Decimal, int, None]

DEFAULT_DATE_FORMAT = "%Y/%m/%d"


def kind_of(value: Any) -> str:
    """Name of the value's kind, as used in error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, Decimal)):
        return "integer" if isinstance(value, int) else "number"
    if isinstance(value, Amount):
        return "amount"
    if isinstance(value, Balance):
        return "balance"
    if isinstance(value, str):
        return "string"
    if isinstance(value, date):
        return "date"
    if isinstance(value, tuple):
        return "sequence"
    return type(value).__name__


def is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


def to_amount(value: Value) -> Amount:
    if isinstance(value, Amount):
        return value
    if value is None:
        return Amount(0)
    if is_number(value):
        return Amount(Decimal(value))
    if isinstance(value, Balance):
        if value.is_zero():
            return Amount(0)
        single = value.single_amount()
        if single is not None:
            return single
        raise ValueTypeError(
            f"Cannot convert a balance with several commodities to an amount: {value}"
        )
    if isinstance(value, str):
        return Amount.parse(value)
    raise ValueTypeError(f"Cannot convert {kind_of(value)} to an amount")


def to_balance(value: Value) -> Balance:
    if isinstance(value, Balance):
        return value
    if value is None:
        return Balance()
    return Balance([to_amount(value)])


def to_number(value: Value) -> Decimal:
    if is_number(value):
        return Decimal(value)
    if isinstance(value, bool):
        return Decimal(int(value))
    return to_amount(value).number()


def to_string(value: Value, date_format: str | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.strftime(date_format or DEFAULT_DATE_FORMAT)
    if isinstance(value, tuple):
        return ", ".join(to_string(v, date_format) for v in value)
    if is_number(value):
        return format(Decimal(value).normalize(), "f") if value else "0"
    return str(value)


def to_date(value: Value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.replace("/", "-"))
        except ValueError as e:
            raise ValueTypeError(f"Cannot convert string '{value}' to a date") from e
    raise ValueTypeError(f"Cannot convert {kind_of(value)} to a date")


def to_boolean(value: Value) -> bool:
    if value is None:
        return False
    if isinstance(value, (Amount, Balance)):
        return not value.is_zero()
    return bool(value)


def to_sequence(value: Value) -> tuple:
    if isinstance(value, tuple):
        return value
    if value is None:
        return ()
    return (value,)


def strip_annotations(value: Value, keep: KeepDetails | None = None) -> Value:
    if isinstance(value, (Amount, Balance)):
        return value.strip_annotations(keep)
    if isinstance(value, tuple):
        return tuple(strip_annotations(v, keep) for v in value)
    return value


def add_values(left: Value, right: Value) -> Value:
    """Add two values, treating None as zero."""
    if left is None:
        return right
    if right is None:
        return left
    if isinstance(left, str) or isinstance(right, str):
        if isinstance(left, str) and isinstance(right, str):
            return left + right
        raise ValueTypeError(f"Cannot add {kind_of(left)} and {kind_of(right)}")
    if isinstance(left, (Amount, Balance)) or isinstance(right, (Amount, Balance)):
        if isinstance(left, (date, tuple, bool)) or isinstance(right, (date, tuple, bool)):
            raise ValueTypeError(f"Cannot add {kind_of(left)} and {kind_of(right)}")
        if is_number(left):
            return right + left
        return left + right
    if is_number(left) and is_number(right):
        return left + right
    raise ValueTypeError(f"Cannot add {kind_of(left)} and {kind_of(right)}")


def negate(value: Value) -> Value:
    if isinstance(value, (Amount, Balance)) or is_number(value):
        return -value
    if isinstance(value, bool):
        return not value
    raise ValueTypeError(f"Cannot negate {kind_of(value)}")


def _rank(value: Value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if is_number(value) or isinstance(value, (Amount, Balance)):
        return 2
    if isinstance(value, date):
        return 3
    if isinstance(value, str):
        return 4
    if isinstance(value, tuple):
        return 5
    raise ValueTypeError(f"Cannot order values of kind {kind_of(value)}")


def compare_values(left: Value, right: Value) -> int:
    """
    Three-way comparison used by sort keys.

    Raises:
        ValueTypeError: If the two values are of unrelated kinds
    """
    left_rank, right_rank = _rank(left), _rank(right)
    if left_rank != right_rank:
        if left is None or right is None:
            return left_rank - right_rank
        raise ValueTypeError(f"Cannot compare {kind_of(left)} with {kind_of(right)}")

    if left_rank == 2:
        if isinstance(left, Balance) or isinstance(right, Balance):
            return _compare_balances(to_balance(left), to_balance(right))
        left_amount, right_amount = to_amount(left), to_amount(right)
        if (
            left_amount.commodity is not None
            and right_amount.commodity is not None
            and left_amount.commodity != right_amount.commodity
        ):
            return (left_amount.commodity.symbol > right_amount.commodity.symbol) - (
                left_amount.commodity.symbol < right_amount.commodity.symbol
            )
        left, right = left_amount.quantity, right_amount.quantity
    elif left_rank == 5:
        for a, b in zip(left, right):
            result = compare_values(a, b)
            if result:
                return result
        return len(left) - len(right)
    return (left > right) - (left < right)


def _compare_balances(left: Balance, right: Balance) -> int:
    left_items = [(a.commodity.symbol if a.commodity else "", a.quantity) for a in left.amounts]
    right_items = [(a.commodity.symbol if a.commodity else "", a.quantity) for a in right.amounts]
    return (left_items > right_items) - (left_items < right_items)


@total_ordering
class SortKey:
    """Orderable wrapper around a tuple of values."""

    __slots__ = ("values",)

    def __init__(self, values: tuple):
        self.values = values

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SortKey):
            return NotImplemented
        return compare_values(self.values, other.values) == 0

    def __lt__(self, other: SortKey) -> bool:
        return compare_values(self.values, other.values) < 0

    def __repr__(self) -> str:
        return f"SortKey({self.values!r})"


def print_value(
    value: Value,
    first_width: int | None = None,
    latter_width: int | None = None,
    date_format: str | None = None,
) -> str:
    """
    Render a value for columnar output.

    Amounts are right-justified to ``first_width``. Balances print one
    commodity per line; the first line uses ``first_width`` and the following
    lines ``latter_width`` (defaulting to ``first_width``). Other values are
    left-justified.
    """
    if isinstance(value, Balance) and len(value) > 1:
        widths = [first_width] + [latter_width or first_width] * (len(value) - 1)
        return "\n".join(
            _justify(str(a), w, right=True) for a, w in zip(value.amounts, widths)
        )
    if isinstance(value, (Amount, Balance)) or is_number(value):
        return _justify(to_string(value), first_width, right=True)
    return _justify(to_string(value, date_format), first_width, right=False)


def _justify(text: str, width: int | None, right: bool) -> str:
    if not width or width < 0:
        return text
    return text.rjust(width) if right else text.ljust(width)
