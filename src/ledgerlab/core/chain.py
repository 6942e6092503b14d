"""
Chain composer: assembles and runs the filter stages of one report.

A chain is an owned list of stages built fresh for every invocation from the
report's option cells, followed by a terminal handler. Items are pushed
through by explicit iteration; at end of stream each stage is flushed in
order and whatever it releases travels through the rest of the chain before
the next stage is flushed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from .filters import (
    BasisConvert,
    BudgetPosts,
    ByPayeePosts,
    CalcPosts,
    CollapsePosts,
    DateRangeFilter,
    DayOfWeekPosts,
    FilterAccounts,
    FilterPosts,
    IntervalPosts,
    MarketConvert,
    PostingStateFilter,
    RelatedPosts,
    SortEntryPosts,
    SortPosts,
    Stage,
    SubtotalPosts,
    TransferDetails,
    TruncatePosts,
)
from .journal import PostingState
from .periods import ADVERB_FREQS, Interval, parse_period

if TYPE_CHECKING:
    from .report import Report

logger = logging.getLogger(__name__)

# Grouping flags in the order they override each other (the last one set wins)
INTERVAL_FLAGS = ("daily", "weekly", "monthly", "quarterly", "yearly")


class Chain:
    """
    Stages plus a terminal handler, driven by explicit iteration.

    Attributes:
        stages: Filter stages in push order
        terminal: Handler receiving whatever survives the stages

    **Example Usage:**
        ```python
        chain = build_posting_chain(report, FormatPosts(report, fmt))
        chain.run(journal_posts(journal))
        print(chain.describe())  # "state() -> limit(...) -> calc -> FormatPosts"
        ```
    """

    def __init__(self, stages: list[Stage], terminal: Any):
        self.stages = stages
        self.terminal = terminal

    def _push(self, index: int, item: Any) -> None:
        if index == len(self.stages):
            self.terminal.accept(item)
            return
        for released in self.stages[index].accept(item):
            self._push(index + 1, released)

    def accept(self, item: Any) -> None:
        self._push(0, item)

    def flush(self) -> None:
        for index, stage in enumerate(self.stages):
            for released in stage.flush():
                self._push(index + 1, released)
        self.terminal.flush()

    def run(self, items: Iterable[Any]) -> None:
        """Feed every item, then flush the stages and the terminal."""
        for item in items:
            self.accept(item)
        self.flush()

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def describe(self) -> str:
        parts = [stage.describe() for stage in self.stages]
        parts.append(type(self.terminal).__name__)
        return " -> ".join(parts)

    def __len__(self) -> int:
        return len(self.stages)


def _state_filter(report: Report) -> Stage | None:
    options = report.options
    states = set()
    if options.handled("cleared"):
        states.add(PostingState.CLEARED)
    if options.handled("uncleared"):
        states.add(PostingState.UNCLEARED)
    if options.handled("pending"):
        states.add(PostingState.PENDING)
    real = options.handled("real")
    actual = options.handled("actual")
    if not (states or real or actual):
        return None
    return PostingStateFilter(states, real=real, actual=actual)


def _period(report: Report) -> Interval:
    """The report's interval: the ``period_`` expression overridden by grouping flags."""
    options = report.options
    text = options.value("period_")
    interval = parse_period(text, report.today()) if text else Interval()
    for flag in INTERVAL_FLAGS:
        if options.handled(flag):
            freq, count = ADVERB_FREQS[flag]
            interval = replace(interval, freq=freq, count=count)
    return interval


def _date_range(report: Report, interval: Interval) -> Stage | None:
    options = report.options
    begin: date | None = options.value("begin_")
    end: date | None = options.value("end_")
    if interval.begin is not None and (begin is None or interval.begin > begin):
        begin = interval.begin
    if interval.end is not None and (end is None or interval.end < end):
        end = interval.end
    if options.handled("current"):
        tomorrow = report.today() + timedelta(days=1)
        if end is None or tomorrow < end:
            end = tomorrow
    if begin is None and end is None:
        return None
    return DateRangeFilter(begin, end)


def _conversion(report: Report) -> Stage | None:
    options = report.options
    if options.handled("quantity"):
        return None
    if options.handled("market"):
        return MarketConvert(report.today())
    if options.handled("basis"):
        return BasisConvert()
    return None


def _transfer_details(report: Report) -> Stage | None:
    options = report.options
    payee_from = options.value("set_payee_")
    if options.handled("comm_as_payee"):
        payee_from = "commodity"
    elif options.handled("code_as_payee"):
        payee_from = "code"
    account_from = options.value("set_account_")
    if options.handled("payee_as_account"):
        account_from = "payee"
    elif options.handled("comm_as_account"):
        account_from = "commodity"
    elif options.handled("code_as_account"):
        account_from = "code"
    if not (payee_from or account_from):
        return None
    return TransferDetails(report, payee_from, account_from)


def _selection_stages(report: Report, interval: Interval) -> list[Stage]:
    options = report.options
    stages = [_state_filter(report), _date_range(report, interval)]
    limit = options.value("limit_")
    if limit:
        stages.append(FilterPosts(limit, report, name="limit"))
    return [stage for stage in stages if stage is not None]


def _budget(report: Report) -> Stage | None:
    options = report.options
    periodic = report.journal.periodic_entries
    if options.handled("add_budget"):
        return BudgetPosts(periodic, keep_budgeted=True, keep_unbudgeted=True)
    if options.handled("budget"):
        return BudgetPosts(periodic, keep_budgeted=True, keep_unbudgeted=False)
    if options.handled("unbudgeted"):
        return BudgetPosts(periodic, keep_budgeted=False, keep_unbudgeted=True, generate=False)
    return None


def build_posting_chain(report: Report, terminal: Any, preliminary: bool = False) -> Chain:
    """
    Build the postings chain for ``report``.

    Stages appear in a fixed order, each only when its governing option is
    set: state and date selection, ``limit_``, related expansion, valuation
    and transfer details, sorting, budget and grouping, ``only_``, running
    totals, ``display_``, head/tail truncation.

    Args:
        report: Report whose option cells drive the chain
        terminal: Handler receiving the surviving postings
        preliminary: Build only the selection and valuation stages, as used
            for computing account totals

    Returns:
        A ready-to-run Chain
    """
    options = report.options
    interval = _period(report)
    stages = _selection_stages(report, interval)

    if preliminary:
        conversion = _conversion(report)
        if conversion is not None:
            stages.append(conversion)
        chain = Chain(stages, terminal)
        logger.debug("Preliminary chain: %s", chain.describe())
        return chain

    if options.handled("related_all"):
        stages.append(RelatedPosts(also_matching=True))
    elif options.handled("related"):
        stages.append(RelatedPosts())

    for stage in (_conversion(report), _transfer_details(report)):
        if stage is not None:
            stages.append(stage)

    sort_key = options.value("sort_") or options.value("sort_all_")
    if sort_key:
        stages.append(SortPosts(sort_key, report))
    elif options.value("sort_entries_"):
        stages.append(SortEntryPosts(options.value("sort_entries_"), report))

    budget = _budget(report)
    if budget is not None:
        stages.append(budget)
    if interval.groups:
        stages.append(IntervalPosts(interval))
    elif options.handled("subtotal"):
        stages.append(SubtotalPosts())
    if options.handled("dow"):
        stages.append(DayOfWeekPosts())
    if options.handled("by_payee"):
        stages.append(ByPayeePosts())
    if options.handled("collapse_if_zero"):
        stages.append(CollapsePosts(only_if_zero=True))
    elif options.handled("collapse"):
        stages.append(CollapsePosts())
    if options.value("only_"):
        stages.append(FilterPosts(options.value("only_"), report, name="only"))

    stages.append(CalcPosts(report.amount_expr, report))

    if options.value("display_"):
        stages.append(FilterPosts(options.value("display_"), report, name="display"))
    if options.value("head_") or options.value("tail_"):
        stages.append(TruncatePosts(options.value("head_"), options.value("tail_")))

    chain = Chain(stages, terminal)
    logger.debug("Posting chain: %s", chain.describe())
    return chain


def build_account_chain(report: Report, terminal: Any) -> Chain:
    """Accounts chain: the terminal, behind the ``display_`` predicate when set."""
    stages: list[Stage] = []
    display = report.options.value("display_")
    if display:
        stages.append(FilterAccounts(display, report, report.journal.accounts))
    chain = Chain(stages, terminal)
    logger.debug("Account chain: %s", chain.describe())
    return chain
