"""
Diagnostic precommands.

Precommands inspect how the reporting core understands its input (query
terms, expressions, formats, periods) without running a report. Each one
takes the report and the call arguments, writes its findings to the report's
output stream and returns True.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from .errors import ExpressionError
from .expr import Expr
from .format import Format, render_template
from .periods import parse_period
from .query import args_to_predicate
from .scope import CallArgs, PostingScope
from .values import kind_of, to_string
from .walkers import journal_posts

if TYPE_CHECKING:
    from .report import Report

PERIOD_BUCKETS_SHOWN = 20


def _joined(args: CallArgs) -> str:
    text = " ".join(to_string(arg) for arg in args)
    if not text.strip():
        raise ExpressionError("Missing argument")
    return text


def precmd_args(report: Report, args: CallArgs) -> bool:
    """Show the predicate built from query terms."""
    out = report.output_stream
    out.write("--- Input arguments ---\n")
    out.write(" ".join(repr(to_string(arg)) for arg in args) + "\n\n")
    out.write("--- Predicate expression ---\n")
    out.write(args_to_predicate(args) + "\n")
    return True


def precmd_eval(report: Report, args: CallArgs) -> bool:
    """Evaluate an expression in the report's scope and print the result."""
    result = Expr(_joined(args)).calc(report)
    report.output_stream.write(to_string(result, report.options.value("date_format_")) + "\n")
    return True


def precmd_parse(report: Report, args: CallArgs) -> bool:
    """Show an expression's syntax tree and value."""
    expr = Expr(_joined(args)).compile()
    out = report.output_stream
    out.write("--- Input expression ---\n")
    out.write(expr.source + "\n\n")
    out.write("--- Expression tree ---\n")
    out.write(expr.dump() + "\n\n")
    out.write("--- Calculated value ---\n")
    value = expr.calc(report)
    out.write(f"{to_string(value)} ({kind_of(value)})\n")
    return True


def precmd_format(report: Report, args: CallArgs) -> bool:
    """Show a format's compiled elements and its rendering for the first posting."""
    fmt = Format(_joined(args))
    out = report.output_stream
    out.write("--- Format elements ---\n")
    for line in fmt.describe():
        out.write(line + "\n")

    first = next(journal_posts(report.journal), None)
    if first is not None:
        out.write("\n--- Formatted string ---\n")
        out.write('"' + fmt.render(PostingScope(report, first)) + '"\n')
    return True


def precmd_period(report: Report, args: CallArgs) -> bool:
    """Show how a period expression is understood and its first buckets."""
    today = report.today()
    interval = parse_period(_joined(args), today)
    out = report.output_stream
    out.write("--- Period expression ---\n")
    out.write(interval.describe() + "\n")
    if not interval.groups:
        return True

    out.write("\n--- Sample periods ---\n")
    date_format = report.options.value("date_format_")
    first = interval.begin or today
    last = interval.end - timedelta(days=1) if interval.end is not None else None
    bucket = interval.bucket(first)
    for number in range(1, PERIOD_BUCKETS_SHOWN + 1):
        start = interval.bucket_start(bucket)
        if last is not None and start > last:
            break
        end = interval.bucket_end(bucket) - timedelta(days=1)
        out.write(f"{number:>2}: {start.strftime(date_format)} - {end.strftime(date_format)}\n")
        bucket += 1
    return True


def precmd_template(report: Report, args: CallArgs) -> bool:
    """Render a format template once in the report's scope."""
    report.output_stream.write(render_template(_joined(args), report))
    return True


PRECOMMANDS = {
    "args": precmd_args,
    "eval": precmd_eval,
    "format": precmd_format,
    "parse": precmd_parse,
    "period": precmd_period,
    "template": precmd_template,
}
