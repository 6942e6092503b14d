"""
Tests for the diagnostic precommands.
"""

from __future__ import annotations

import pytest
from ledgerlab.core.errors import ExpressionError
from ledgerlab.core.scope import CallArgs


def precmd(report, name, *args):
    assert report.lookup(f"precmd_{name}")(CallArgs(list(args))) is True
    return report.output_stream.getvalue()


def test_args_shows_predicate(report):
    assert precmd(report, "args", "Food", "@Grocer") == (
        "--- Input arguments ---\n"
        "'Food' '@Grocer'\n"
        "\n"
        "--- Predicate expression ---\n"
        "account =~ /Food/ | payee =~ /Grocer/\n"
    )


def test_eval(report):
    assert precmd(report, "eval", "2 +", "3") == "5\n"


def test_eval_uses_date_format(report):
    report.options["date_format_"].on("%d/%m/%Y")
    assert precmd(report, "eval", "today") == "15/03/2024\n"


def test_parse_shows_tree_and_value(report):
    output = precmd(report, "parse", "2 * 3")
    assert "--- Input expression ---\n2 * 3\n" in output
    assert "--- Expression tree ---\nMUL\n  VALUE: 2 (number)\n  VALUE: 3 (number)\n" in output
    assert output.endswith("--- Calculated value ---\n6 (number)\n")


def test_format_renders_first_posting(report):
    output = precmd(report, "format", "%-8(payee)|")
    assert "EXPR: 'payee' min=8 max=None align=left" in output
    assert "TEXT: '|'" in output
    assert output.endswith('--- Formatted string ---\n"Grocer  |"\n')


def test_format_without_postings(report):
    report.journal.entries.clear()
    output = precmd(report, "format", "%(payee)")
    assert "Formatted string" not in output


def test_period_lists_buckets(report):
    output = precmd(report, "period", "monthly from 2024-01 to 2024-03")
    assert output == (
        "--- Period expression ---\n"
        "every 1 M from 2024-01-01 until 2024-04-01\n"
        "\n"
        "--- Sample periods ---\n"
        " 1: 2024/01/01 - 2024/01/31\n"
        " 2: 2024/02/01 - 2024/02/29\n"
        " 3: 2024/03/01 - 2024/03/31\n"
    )


def test_period_without_grouping(report):
    output = precmd(report, "period", "this month")
    assert output == "--- Period expression ---\nfrom 2024-03-01 until 2024-04-01\n"


def test_open_period_stops_after_twenty_buckets(report):
    output = precmd(report, "period", "weekly")
    assert output.splitlines()[-1].startswith("20: 2024/")


def test_template(report):
    assert precmd(report, "template", "Today is %(today)") == "Today is 2024/03/15"


@pytest.mark.parametrize("name", ["eval", "parse", "format", "period", "template"])
def test_missing_argument(report, name):
    with pytest.raises(ExpressionError, match="Missing argument"):
        report.lookup(f"precmd_{name}")(CallArgs([" "]))
