"""
Filter stages for posting and account streams.

A stage receives items one at a time through ``accept`` and returns the items
it forwards (zero or more). At end of stream the chain calls ``flush`` once;
buffering stages return their held items from there, in their own order.
Stages never reorder items except ``SortPosts`` and never modify postings they
did not create, apart from the transient ``xdata`` cache.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from .accounts import Account
from .amount import market_value
from .expr import Expr, evaluate_predicate
from .journal import Entry, PeriodicEntry, Posting, PostingState
from .periods import Interval, parse_period
from .scope import AccountScope, PostingScope, Scope
from .values import SortKey, add_values, to_sequence, to_string

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
TOTAL_ACCOUNT_NAME = "<Total>"
BUDGET_PAYEE = "Budget transaction"


def temporary_account(fullname: str) -> Account:
    """Account outside the journal's tree, used for generated postings."""
    return Account(-1, fullname.rsplit(":", 1)[-1], fullname, None, fullname.count(":") + 1)


class Stage:
    """
    Base stream stage: forwards every item unchanged.

    Attributes:
        name: Short stage name, used when describing a chain
    """

    name = "pass"

    def accept(self, item: Any) -> Iterable[Any]:
        return (item,)

    def flush(self) -> Iterable[Any]:
        return ()

    def describe(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()}>"


# --- selection -------------------------------------------------------------


class PostingStateFilter(Stage):
    """Keep postings in the requested clearing states, real or actual."""

    name = "state"

    def __init__(
        self,
        states: set[PostingState] | None = None,
        real: bool = False,
        actual: bool = False,
    ):
        self.states = states or set()
        self.real = real
        self.actual = actual

    def accept(self, item: Posting) -> Iterable[Posting]:
        if self.states and item.effective_state not in self.states:
            return ()
        if self.real and item.virtual:
            return ()
        if self.actual and item.auto:
            return ()
        return (item,)

    def describe(self) -> str:
        flags = sorted(s.value for s in self.states)
        flags += [f for f, on in (("real", self.real), ("actual", self.actual)) if on]
        return f"state({','.join(flags)})"


class DateRangeFilter(Stage):
    """Keep postings dated in ``[begin, end)``."""

    name = "date_range"

    def __init__(self, begin: date | None = None, end: date | None = None):
        self.begin = begin
        self.end = end

    def accept(self, item: Posting) -> Iterable[Posting]:
        moment = item.effective_date
        if self.begin is not None and moment < self.begin:
            return ()
        if self.end is not None and moment >= self.end:
            return ()
        return (item,)

    def describe(self) -> str:
        return f"date_range({self.begin}, {self.end})"


class FilterPosts(Stage):
    """Keep postings for which a predicate expression is true."""

    name = "filter"

    def __init__(self, predicate: str | Expr, context: Scope, name: str | None = None):
        self.predicate = Expr(predicate).compile()
        self.context = context
        if name is not None:
            self.name = name

    def accept(self, item: Posting) -> Iterable[Posting]:
        if evaluate_predicate(self.predicate, PostingScope(self.context, item)):
            return (item,)
        return ()

    def describe(self) -> str:
        return f"{self.name}({self.predicate.source})"


class FilterAccounts(Stage):
    """Keep accounts for which a predicate expression is true."""

    name = "display"

    def __init__(self, predicate: str | Expr, context: Scope, tree=None):
        self.predicate = Expr(predicate).compile()
        self.context = context
        self.tree = tree

    def accept(self, item: Account) -> Iterable[Account]:
        if evaluate_predicate(self.predicate, AccountScope(self.context, item, self.tree)):
            item.xdata.to_display = True
            return (item,)
        return ()

    def describe(self) -> str:
        return f"display({self.predicate.source})"


# --- expansion and valuation -----------------------------------------------


class RelatedPosts(Stage):
    """
    Replace each posting by the other postings of its entry.

    Buffers until end of stream so that a sibling matched in its own right is
    not repeated. With ``also_matching`` the matched postings are emitted as
    well (the whole entry).
    """

    name = "related"

    def __init__(self, also_matching: bool = False):
        self.also_matching = also_matching
        self.matched: list[Posting] = []

    def accept(self, item: Posting) -> Iterable[Posting]:
        self.matched.append(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        matched_ids = {id(p) for p in self.matched}
        emitted: set[int] = set()
        for posting in self.matched:
            if posting.entry is None:
                continue
            for sibling in posting.entry.postings:
                if id(sibling) in emitted:
                    continue
                if not self.also_matching and id(sibling) in matched_ids:
                    continue
                emitted.add(id(sibling))
                yield sibling
        self.matched = []

    def describe(self) -> str:
        return "related_all" if self.also_matching else "related"


class MarketConvert(Stage):
    """Value each posting at its latest market price."""

    name = "market"

    def __init__(self, moment: date | None = None):
        self.moment = moment

    def accept(self, item: Posting) -> Iterable[Posting]:
        item.xdata.value = market_value(item.report_amount, self.moment)
        return (item,)


class BasisConvert(Stage):
    """Report each posting at its cost basis."""

    name = "basis"

    def accept(self, item: Posting) -> Iterable[Posting]:
        item.xdata.value = item.cost_amount()
        return (item,)


class TransferDetails(Stage):
    """
    Rewrite the payee or account a posting is reported under.

    Args:
        payee_from: 'code', 'commodity' or an expression, or None
        account_from: 'payee', 'code', 'commodity' or an expression, or None
    """

    name = "transfer_details"

    def __init__(
        self, context: Scope, payee_from: str | None = None, account_from: str | None = None
    ):
        self.context = context
        self.payee_expr = Expr(payee_from).compile() if payee_from else None
        self.account_expr = Expr(account_from).compile() if account_from else None
        self._accounts: dict[str, Account] = {}

    def accept(self, item: Posting) -> Iterable[Posting]:
        scope = PostingScope(self.context, item)
        if self.account_expr is not None:
            name = to_string(self.account_expr.calc(scope)) or item.account.fullname
            if name not in self._accounts:
                self._accounts[name] = temporary_account(name)
            item.xdata.account = self._accounts[name]
        if self.payee_expr is not None:
            item.xdata.payee = to_string(self.payee_expr.calc(scope))
        return (item,)

    def describe(self) -> str:
        return f"transfer_details(payee={self.payee_expr}, account={self.account_expr})"


# --- ordering --------------------------------------------------------------


class SortPosts(Stage):
    """Buffer the whole stream and emit it stably sorted by a key expression."""

    name = "sort"

    def __init__(self, key: str | Expr, context: Scope):
        self.key = Expr(key).compile()
        self.context = context
        self.buffer: list[Posting] = []

    def sort_key(self, item: Posting) -> SortKey:
        key = SortKey(to_sequence(self.key.calc(PostingScope(self.context, item))))
        item.xdata.sort_key = key
        return key

    def accept(self, item: Posting) -> Iterable[Posting]:
        self.buffer.append(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        ordered = sorted(self.buffer, key=self.sort_key)
        self.buffer = []
        return ordered

    def describe(self) -> str:
        return f"sort({self.key.source})"


class SortEntryPosts(SortPosts):
    """Sort postings within each entry, keeping entries in stream order."""

    name = "sort_entries"

    def __init__(self, key: str | Expr, context: Scope):
        super().__init__(key, context)
        self.current: Entry | None = None

    def accept(self, item: Posting) -> Iterable[Posting]:
        released: list[Posting] = []
        if self.current is not None and item.entry is not self.current:
            released = list(super().flush())
        self.current = item.entry
        self.buffer.append(item)
        return released

    def flush(self) -> Iterable[Posting]:
        self.current = None
        return super().flush()

    def describe(self) -> str:
        return f"sort_entries({self.key.source})"


# --- grouping --------------------------------------------------------------


class _Subtotals:
    """Per-account sums for one group of postings."""

    def __init__(self) -> None:
        self.accounts: dict[str, list[Any]] = {}
        self.first_date: date | None = None
        self.last_date: date | None = None

    def add(self, posting: Posting) -> None:
        account = posting.display_account
        slot = self.accounts.setdefault(account.fullname, [account, None])
        slot[1] = add_values(slot[1], posting.report_amount)
        moment = posting.effective_date
        if self.first_date is None or moment < self.first_date:
            self.first_date = moment
        if self.last_date is None or moment > self.last_date:
            self.last_date = moment

    def generate(self, moment: date, payee: str) -> list[Posting]:
        entry = Entry(date=moment, payee=payee)
        for name in sorted(self.accounts):
            account, total = self.accounts[name]
            entry.add_posting(Posting(account=account, amount=total))
        return entry.postings


def _range_payee(last: date) -> str:
    return f"- {last.strftime('%Y/%m/%d')}"


class SubtotalPosts(Stage):
    """Collapse the whole stream into one posting per account."""

    name = "subtotal"

    def __init__(self) -> None:
        self.totals = _Subtotals()

    def accept(self, item: Posting) -> Iterable[Posting]:
        self.totals.add(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        totals, self.totals = self.totals, _Subtotals()
        if totals.first_date is None:
            return []
        return totals.generate(totals.first_date, _range_payee(totals.last_date))


class IntervalPosts(Stage):
    """
    Collapse postings into one posting per account per period.

    Buckets are emitted in chronological order at end of stream, whatever
    order the postings arrived in.
    """

    name = "interval"

    def __init__(self, interval: Interval):
        self.interval = interval
        self.buckets: dict[int, _Subtotals] = {}

    def accept(self, item: Posting) -> Iterable[Posting]:
        bucket = self.interval.bucket(item.effective_date)
        self.buckets.setdefault(bucket, _Subtotals()).add(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        buckets, self.buckets = self.buckets, {}
        for bucket in sorted(buckets):
            start = self.interval.bucket_start(bucket)
            last = self.interval.bucket_end(bucket) - timedelta(days=1)
            yield from buckets[bucket].generate(start, _range_payee(last))

    def describe(self) -> str:
        return f"interval({self.interval.describe()})"


class DayOfWeekPosts(Stage):
    """Collapse postings into one group per weekday, Sunday first."""

    name = "dow"

    def __init__(self) -> None:
        self.days: dict[int, _Subtotals] = {}

    def accept(self, item: Posting) -> Iterable[Posting]:
        day = (item.effective_date.weekday() + 1) % 7
        self.days.setdefault(day, _Subtotals()).add(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        days, self.days = self.days, {}
        for day in sorted(days):
            yield from days[day].generate(days[day].first_date, WEEKDAY_NAMES[day])


class ByPayeePosts(Stage):
    """Collapse postings into one group per payee, payees in name order."""

    name = "by_payee"

    def __init__(self) -> None:
        self.payees: dict[str, _Subtotals] = {}

    def accept(self, item: Posting) -> Iterable[Posting]:
        self.payees.setdefault(item.payee, _Subtotals()).add(item)
        return ()

    def flush(self) -> Iterable[Posting]:
        payees, self.payees = self.payees, {}
        for payee in sorted(payees):
            yield from payees[payee].generate(payees[payee].first_date, payee)


class CollapsePosts(Stage):
    """
    Collapse the postings of each entry into a single posting.

    An entry with only one surviving posting passes through unchanged. With
    ``only_if_zero`` entries whose postings do not sum to zero are left alone.
    """

    name = "collapse"

    def __init__(self, only_if_zero: bool = False):
        self.only_if_zero = only_if_zero
        self.current: Entry | None = None
        self.pending: list[Posting] = []
        self.total_account = temporary_account(TOTAL_ACCOUNT_NAME)

    def _release(self) -> list[Posting]:
        pending, self.pending = self.pending, []
        if len(pending) < 2:
            return pending
        total = None
        for posting in pending:
            total = add_values(total, posting.report_amount)
        if self.only_if_zero and total:
            return pending
        source = pending[0].entry
        entry = Entry(date=pending[0].effective_date, payee=pending[0].payee, code=source.code)
        entry.add_posting(Posting(account=self.total_account, amount=total))
        return entry.postings

    def accept(self, item: Posting) -> Iterable[Posting]:
        released: list[Posting] = []
        if self.current is not None and item.entry is not self.current:
            released = self._release()
        self.current = item.entry
        self.pending.append(item)
        return released

    def flush(self) -> Iterable[Posting]:
        self.current = None
        return self._release()

    def describe(self) -> str:
        return "collapse_if_zero" if self.only_if_zero else "collapse"


class BudgetPosts(Stage):
    """
    Mix budgeted amounts into the stream.

    Each periodic entry is expanded over the periods the stream covers; the
    generated postings carry the negated budget so that account totals show
    the difference between actual and budgeted amounts.

    Args:
        periodic_entries: Budget templates
        keep_budgeted: Keep actual postings to budgeted accounts
        keep_unbudgeted: Keep actual postings to accounts without a budget
        generate: Emit the generated budget postings
    """

    name = "budget"

    def __init__(
        self,
        periodic_entries: list[PeriodicEntry],
        keep_budgeted: bool = True,
        keep_unbudgeted: bool = False,
        generate: bool = True,
    ):
        self.templates = [(parse_period(p.period), p) for p in periodic_entries]
        self.budgeted = {t.account.fullname for p in periodic_entries for t in p.postings}
        self.keep_budgeted = keep_budgeted
        self.keep_unbudgeted = keep_unbudgeted
        self.generate = generate
        self.buffer: list[Posting] = []

    def is_budgeted(self, posting: Posting) -> bool:
        name = posting.account.fullname
        return any(name == b or name.startswith(b + ":") for b in self.budgeted)

    def accept(self, item: Posting) -> Iterable[Posting]:
        budgeted = self.is_budgeted(item)
        if (budgeted and self.keep_budgeted) or (not budgeted and self.keep_unbudgeted):
            self.buffer.append(item)
        return ()

    def _budget_postings(self, first: date, last: date) -> list[Posting]:
        generated = []
        for interval, periodic in self.templates:
            grouping = interval if interval.groups else Interval(freq="M")
            for start, end in grouping.buckets(interval.begin or first, interval.end or last):
                if interval.end is not None and start >= interval.end:
                    continue
                entry = Entry(date=start, payee=BUDGET_PAYEE)
                for template in periodic.postings:
                    entry.add_posting(
                        Posting(account=template.account, amount=-template.amount, auto=True)
                    )
                generated.extend(entry.postings)
        return generated

    def flush(self) -> Iterable[Posting]:
        buffer, self.buffer = self.buffer, []
        if not buffer or not self.generate:
            return buffer
        dates = [p.effective_date for p in buffer]
        generated = self._budget_postings(min(dates), max(dates))
        tagged = [(p.effective_date, 0, p) for p in generated]
        tagged += [(p.effective_date, 1, p) for p in buffer]
        return [p for _, _, p in sorted(tagged, key=lambda t: (t[0], t[1]))]


# --- totals and truncation -------------------------------------------------


class CalcPosts(Stage):
    """Record a running posting count and running total on each posting."""

    name = "calc"

    def __init__(self, amount_expr: Expr, context: Scope):
        self.amount_expr = amount_expr
        self.context = context
        self.count = 0
        self.total: Any = None

    def accept(self, item: Posting) -> Iterable[Posting]:
        self.count += 1
        self.total = add_values(self.total, self.amount_expr.calc(PostingScope(self.context, item)))
        item.xdata.count = self.count
        item.xdata.total = self.total
        item.xdata.visited = True
        return (item,)


class TruncatePosts(Stage):
    """
    Keep the first ``head`` and the last ``tail`` items.

    With both limits the result is the union of the two windows, in stream
    order. A limit of 0 or None is ignored.
    """

    name = "truncate"

    def __init__(self, head: int | None = None, tail: int | None = None):
        self.head = head or 0
        self.tail = tail or 0
        self.seen = 0
        self.buffer: list[Any] = []

    def accept(self, item: Any) -> Iterable[Any]:
        self.seen += 1
        if not self.tail:
            return (item,) if self.seen <= self.head else ()
        self.buffer.append(item)
        return ()

    def flush(self) -> Iterable[Any]:
        buffer, self.buffer = self.buffer, []
        count = len(buffer)
        return [
            item
            for index, item in enumerate(buffer)
            if index < self.head or index >= count - self.tail
        ]

    def describe(self) -> str:
        return f"truncate(head={self.head}, tail={self.tail})"
