"""
Tests for chain assembly and execution.
"""

from __future__ import annotations

from datetime import date

from ledgerlab.core.chain import Chain, _period, build_account_chain, build_posting_chain
from ledgerlab.core.filters import FilterPosts, SortPosts, TruncatePosts
from ledgerlab.core.periods import WEEKLY_FREQ
from ledgerlab.core.walkers import basic_accounts, journal_posts


class Collect:
    """Terminal recording what reaches it."""

    def __init__(self):
        self.items = []
        self.flushed = False

    def accept(self, item):
        self.items.append(item)

    def flush(self):
        self.flushed = True


class TestChainExecution:
    def test_empty_chain_forwards_everything(self, groceries):
        terminal = Collect()
        Chain([], terminal).run(journal_posts(groceries))
        assert len(terminal.items) == 3
        assert terminal.flushed

    def test_released_items_pass_later_stages(self, report, groceries):
        terminal = Collect()
        chain = Chain(
            [SortPosts("-amount", report), TruncatePosts(head=1)],
            terminal,
        )
        chain.run(journal_posts(groceries))
        assert [str(p.amount) for p in terminal.items] == ["$10"]

    def test_describe(self, report):
        chain = Chain([FilterPosts("payee =~ /x/", report, name="limit")], Collect())
        assert chain.describe() == "limit(payee =~ /x/) -> Collect"
        assert len(chain) == 1


class TestPostingChainAssembly:
    def test_default_chain_only_computes_totals(self, report):
        chain = build_posting_chain(report, Collect())
        assert chain.names == ["calc"]

    def test_fixed_stage_order(self, report):
        options = report.options
        options["cleared"].on()
        options["begin_"].on("2024-01")
        options["limit_"].on("account =~ /Food/")
        options["related"].on()
        options["market"].on()
        options["payee_as_account"].on()
        options["sort_"].on("date")
        options["budget"].on()
        options["monthly"].on()
        options["dow"].on()
        options["by_payee"].on()
        options["collapse"].on()
        options["only_"].on("amount > 0")
        options["display_"].on("amount > 0")
        options["head_"].on(5)

        chain = build_posting_chain(report, Collect())
        assert chain.names == [
            "state",
            "date_range",
            "limit",
            "related",
            "market",
            "transfer_details",
            "sort",
            "budget",
            "interval",
            "dow",
            "by_payee",
            "collapse",
            "only",
            "calc",
            "display",
            "truncate",
        ]

    def test_preliminary_chain_selects_and_values_only(self, report):
        report.options["limit_"].on("account =~ /Food/")
        report.options["basis"].on()
        report.options["sort_"].on("date")
        report.options["head_"].on(1)

        chain = build_posting_chain(report, Collect(), preliminary=True)
        assert chain.names == ["limit", "basis"]

    def test_quantity_disables_valuation(self, report):
        report.options["market"].on()
        report.options["quantity"].on()
        assert "market" not in build_posting_chain(report, Collect()).names

    def test_subtotal_yields_to_interval(self, report):
        report.options["subtotal"].on()
        assert "subtotal" in build_posting_chain(report, Collect()).names
        report.options["period_"].on("monthly")
        names = build_posting_chain(report, Collect()).names
        assert "interval" in names and "subtotal" not in names

    def test_current_caps_end_at_tomorrow(self, report):
        report.options["current"].on()
        chain = build_posting_chain(report, Collect())
        assert chain.stages[0].end == date(2024, 3, 16)

    def test_period_range_narrows_begin_and_end(self, report):
        report.options["begin_"].on("2023")
        report.options["period_"].on("in 2024")
        stage = build_posting_chain(report, Collect()).stages[0]
        assert (stage.begin, stage.end) == (date(2024, 1, 1), date(2025, 1, 1))

    def test_grouping_flag_overrides_period_frequency(self, report):
        report.options["period_"].on("monthly from 2024-01")
        report.options["weekly"].on()
        interval = _period(report)
        assert interval.freq == WEEKLY_FREQ
        assert interval.begin == date(2024, 1, 1)


class TestChainsAreFresh:
    def test_same_options_same_output(self, household_report, household):
        household_report.options["sort_"].on("payee")
        first, second = Collect(), Collect()
        build_posting_chain(household_report, first).run(journal_posts(household))
        household.clear_xdata()
        build_posting_chain(household_report, second).run(journal_posts(household))
        assert [id(p) for p in first.items] == [id(p) for p in second.items]

    def test_each_build_owns_its_stages(self, report):
        report.options["sort_"].on("date")
        one = build_posting_chain(report, Collect())
        two = build_posting_chain(report, Collect())
        assert all(a is not b for a, b in zip(one.stages, two.stages))


def test_account_chain_applies_display_predicate(report, groceries):
    report.options["display_"].on("account =~ /Food/")
    terminal = Collect()
    chain = build_account_chain(report, terminal)
    chain.run(basic_accounts(groceries.accounts))
    assert [a.fullname for a in terminal.items] == ["Expenses:Food"]
    assert terminal.items[0].xdata.to_display
