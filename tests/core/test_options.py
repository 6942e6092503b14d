"""
Tests for the option table and option cells.
"""

from __future__ import annotations

from datetime import date

import pytest
from ledgerlab.core.errors import OptionValueError
from ledgerlab.core.options import (
    BALANCE_FORMAT,
    PLOT_AMOUNT_FORMAT,
    REPORT_OPTIONS,
    OptionKind,
    Options,
    OptionSpec,
)
from ledgerlab.core.scope import CallArgs


@pytest.fixture
def options() -> Options:
    return Options()


class TestNames:
    @pytest.mark.parametrize(
        "alias, canonical",
        [
            ("cost", "basis"),
            ("first_", "head_"),
            ("last_", "tail_"),
            ("commodity_as_payee", "comm_as_payee"),
        ],
    )
    def test_aliases_share_one_cell(self, options, alias, canonical):
        options.lookup(alias).on(3 if alias.endswith("_") else None)
        assert options.lookup(canonical).handled
        assert options.lookup(alias) is options.lookup(canonical)

    def test_flags_reach_the_same_cell(self, options):
        assert options.lookup_flag("B") is options.lookup("basis")
        assert options.lookup_flag("l") is options.lookup("limit_")
        assert options.flags()["V"] == "market"

    def test_lookup_is_exact(self, options):
        assert options.lookup("bas") is None
        assert options.lookup("limit") is None
        assert "limit_" in options

    def test_table_has_no_duplicates(self):
        names = [name for spec in REPORT_OPTIONS for name in spec.names]
        assert len(names) == len(set(names))

    def test_duplicate_declaration_rejected(self):
        table = (OptionSpec("basis"), OptionSpec("cost", aliases=("basis",)))
        with pytest.raises(ValueError, match="Duplicate option name 'basis'"):
            Options(table)

    def test_duplicate_flag_rejected(self):
        table = (OptionSpec("basis", flag="B"), OptionSpec("budget", flag="B"))
        with pytest.raises(ValueError, match="Duplicate option flag"):
            Options(table)


class TestConversion:
    def test_defaults(self, options):
        assert options.value("balance_format_") == BALANCE_FORMAT
        assert options.value("columns_") == 80
        assert options.value("amount_") == "amount"
        assert not options.handled("columns_")

    def test_flag_ignores_argument(self, options):
        cell = options["market"].on("anything")
        assert cell.value is True and cell.handled

    def test_false_flag_turns_option_off(self, options):
        options["market"].on()
        options["market"].on(False)
        assert not options.handled("market")

    def test_number(self, options):
        assert options["head_"].on("5").value == 5
        with pytest.raises(OptionValueError, match="head_"):
            options["tail_"].on("five")

    def test_date(self, options):
        assert options["begin_"].on("2024-02").value == date(2024, 2, 1)
        with pytest.raises(OptionValueError):
            options["end_"].on("someday")

    def test_argument_required(self, options):
        with pytest.raises(OptionValueError, match="a value is required"):
            options["limit_"].on()

    def test_choices(self, options):
        assert options["truncate_"].on("leading").value == "leading"
        with pytest.raises(OptionValueError, match="expected one of leading, middle, trailing"):
            options["truncate_"].on("sideways")

    def test_off_restores_default(self, options):
        options["columns_"].on(100, source="--columns")
        assert options["columns_"].source == "--columns"
        options["columns_"].off()
        assert options.value("columns_") == 80
        assert options["columns_"].source is None


class TestHooks:
    def test_invert(self, options):
        options["invert"].on()
        assert options.value("amount_") == "-amount"
        assert options["amount_"].source == "hook"

    def test_wide(self, options):
        options["wide"].on()
        assert options.value("columns_") == 132

    def test_amount_data_selects_plot_format(self, options):
        options["amount_data"].on()
        assert options.value("format_") == PLOT_AMOUNT_FORMAT

    def test_average(self, options):
        options.lookup_flag("A").on()
        assert options.value("display_total_") == "total_expr / count"


class TestAccumulation:
    def test_predicates_are_anded(self, options):
        options["limit_"].append("account =~ /Food/")
        options["limit_"].append("amount > 5")
        assert options.value("limit_") == "(account =~ /Food/) & (amount > 5)"

    def test_plain_options_are_replaced(self, options):
        options["sort_"].append("date")
        options["sort_"].append("amount")
        assert options.value("sort_") == "amount"


class TestCellAccess:
    def test_call_with_argument_sets(self, options):
        cell = options["limit_"]
        assert cell(CallArgs(["payee =~ /Cafe/"])) is True
        assert cell.value == "payee =~ /Cafe/"
        assert cell.source == "opt_limit_"

    def test_call_without_argument_reads(self, options):
        assert options["limit_"](CallArgs()) is None
        assert options["market"](CallArgs()) is False
        options["market"].on()
        assert options["market"](CallArgs()) is True

    def test_handled_cells(self, options):
        options["market"].on()
        options["head_"].on(2)
        assert {c.name for c in options.handled_cells()} == {"market", "head_"}


def test_every_argument_option_is_not_a_flag():
    for spec in REPORT_OPTIONS:
        if spec.takes_argument:
            assert spec.kind is not OptionKind.FLAG, spec.name
        else:
            assert spec.kind is OptionKind.FLAG, spec.name
