"""
Built-in functions available to every report expression.

Each builtin takes the report it is bound to and the ``CallArgs`` of the
call. Arguments are read by position; optional ones are detected with
``args.has(index)``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .amount import Amount, Balance, market_value
from .errors import ValueTypeError
from .format import truncate as truncate_text
from .scope import CallArgs, Scope, as_int
from .values import is_number, kind_of, print_value, strip_annotations, to_date, to_string

if TYPE_CHECKING:
    from .report import Report

logger = logging.getLogger(__name__)

Builtin = Callable[["Report", CallArgs], Any]


def _calling_scope(report: Report, args: CallArgs) -> Scope:
    return args.scope if args.scope is not None else report


def fn_amount_expr(report: Report, args: CallArgs) -> Any:
    return report.amount_expr.calc(_calling_scope(report, args))


def fn_total_expr(report: Report, args: CallArgs) -> Any:
    return report.total_expr.calc(_calling_scope(report, args))


def fn_display_amount(report: Report, args: CallArgs) -> Any:
    return report.display_amount_expr.calc(_calling_scope(report, args))


def fn_display_total(report: Report, args: CallArgs) -> Any:
    return report.display_total_expr.calc(_calling_scope(report, args))


def fn_market(report: Report, args: CallArgs) -> Any:
    """
    Market value of argument 0.

    Argument 1 is the valuation date (today when omitted) and argument 2 the
    target commodity symbol (the quote's own commodity when omitted).
    Non-monetary values are returned unchanged.

    Raises:
        CommodityError: If a target is given and no quote reaches it
    """
    value = args[0]
    if not isinstance(value, (Amount, Balance)):
        return value
    moment = to_date(args[1]) if args.has(1) else report.today()
    target = None
    if args.has(2):
        target = report.journal.commodities.find_or_create(to_string(args[2]))
    result = market_value(value, moment, target)
    logger.debug("market(%s, %s, %s) = %s", value, moment, target, result)
    return result


def fn_strip(report: Report, args: CallArgs) -> Any:
    return strip_annotations(args[0], report.what_to_keep())


def fn_quantity(report: Report, args: CallArgs) -> Decimal:
    """Bare quantity of an amount (or of a balance holding one commodity)."""
    value = args[0]
    if is_number(value):
        return Decimal(value)
    if isinstance(value, Balance):
        if value.is_zero():
            return Decimal(0)
        single = value.single_amount()
        if single is None:
            raise ValueTypeError(f"Cannot take the quantity of a multi-commodity balance: {value}")
        value = single
    if isinstance(value, Amount):
        return value.quantity
    raise ValueTypeError(f"Cannot take the quantity of {kind_of(value)}")


def fn_truncate(report: Report, args: CallArgs) -> str:
    """
    Shorten argument 0 to the width in argument 1.

    Account paths have their intermediate segments abbreviated first, to
    argument 2 characters when given and otherwise to ``abbrev_len_``.
    """
    width = as_int(args.get(1), 0)
    abbrev = as_int(args[2]) if args.has(2) else report.options.value("abbrev_len_")
    return truncate_text(
        to_string(args[0]), width, abbrev or 0, style=report.options.value("truncate_")
    )


def fn_print(report: Report, args: CallArgs) -> str:
    first_width = as_int(args[1]) if args.has(1) else None
    latter_width = as_int(args[2]) if args.has(2) else None
    date_format = to_string(args[3]) if args.has(3) else report.options.value("date_format_")
    value = strip_annotations(args[0], report.what_to_keep())
    return print_value(value, first_width, latter_width, date_format)


def fn_quoted(report: Report, args: CallArgs) -> str:
    text = to_string(args[0]).replace('"', '\\"')
    return f'"{text}"'


def fn_join(report: Report, args: CallArgs) -> str:
    return to_string(args[0]).replace("\n", "")


def fn_format_date(report: Report, args: CallArgs) -> str:
    fmt = to_string(args[1]) if args.has(1) else report.options.value("date_format_")
    return to_date(args[0]).strftime(fmt)


BUILTINS: dict[str, Builtin] = {
    "amount_expr": fn_amount_expr,
    "display_amount": fn_display_amount,
    "display_total": fn_display_total,
    "format_date": fn_format_date,
    "join": fn_join,
    "market": fn_market,
    "print": fn_print,
    "quantity": fn_quantity,
    "quoted": fn_quoted,
    "strip": fn_strip,
    "total_expr": fn_total_expr,
    "truncate": fn_truncate,
}
