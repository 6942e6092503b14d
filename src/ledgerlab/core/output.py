"""
Terminal handlers: the last link of every report chain.

A handler is constructed with the report (and usually a format string) and
receives items through ``accept``; ``flush`` is called once at end of stream.
Everything is written to ``report.output_stream``.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from .accounts import Account
from .amount import Amount
from .filters import temporary_account
from .format import Format, split_format
from .journal import Entry, Posting, PostingState
from .scope import AccountScope, PostingScope, SymbolScope
from .values import add_values, to_balance, to_string

if TYPE_CHECKING:
    from .report import Report

EQUITY_ACCOUNT = "Equity:Opening Balances"
EQUITY_PAYEE = "Opening Balances"


class Handler:
    """Base terminal handler."""

    def __init__(self, report: Report):
        self.report = report

    def write(self, text: str) -> None:
        self.report.output_stream.write(text)

    def accept(self, item: Any) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        self.report.output_stream.flush()


class FormatPosts(Handler):
    """
    Render each posting through a format string.

    A format containing ``%/`` is split in two: the first part renders the
    first posting of each entry, the second part every following posting of
    the same entry.
    """

    def __init__(self, report: Report, format_text: str):
        super().__init__(report)
        first, following = split_format(format_text)
        self.first_format = Format(first)
        self.next_format = Format(following) if following is not None else self.first_format
        self.last_entry: Entry | None = None

    def format_for(self, posting: Posting) -> Format:
        if posting.entry is not None and posting.entry is self.last_entry:
            return self.next_format
        return self.first_format

    def accept(self, item: Posting) -> None:
        fmt = self.format_for(item)
        self.write(fmt.render(PostingScope(self.report, item)))
        item.xdata.displayed = True
        self.last_entry = item.entry


class PrintEntries(FormatPosts):
    """Print postings grouped by entry, with a blank line between entries."""

    def accept(self, item: Posting) -> None:
        if self.last_entry is not None and item.entry is not self.last_entry:
            self.write("\n")
        super().accept(item)


class FormatPrices(Handler):
    """
    Render the price history of each commodity reached by the stream.

    Every recorded quote is rendered with ``date``, ``commodity`` and
    ``price`` bound. A commodity without quotes falls back to the per-unit
    cost of its representative posting, and is skipped when that posting
    carries no cost.
    """

    def __init__(self, report: Report, format_text: str):
        super().__init__(report)
        self.format = Format(format_text)

    def accept(self, item: Posting) -> None:
        commodity = item.amount.commodity if item.amount is not None else None
        if commodity is None:
            return
        quotes = list(commodity.prices)
        if not quotes:
            if item.cost is not None:
                self.write(self.format.render(PostingScope(self.report, item)))
            return
        for quote in quotes:
            scope = SymbolScope(
                self.report,
                {"date": quote.moment, "commodity": commodity.symbol, "price": quote.price},
            )
            self.write(self.format.render(scope))


class FormatAccounts(Handler):
    """
    Balance report renderer.

    Accounts are buffered as they arrive and laid out at flush: zero totals
    are hidden unless ``empty`` is set, a parent with no postings of its own
    and a single displayed child is folded into that child's name
    (``Expenses:Food``), and children are indented two spaces per displayed
    ancestor. When more than one top-level account is shown a separator and
    the grand total follow, unless ``no_total`` is set.
    """

    SEPARATOR = "-" * 20

    def __init__(self, report: Report, format_text: str):
        super().__init__(report)
        self.format = Format(format_text)
        self.accounts: list[Account] = []

    def accept(self, item: Account) -> None:
        self.accounts.append(item)

    def _is_candidate(self, account: Account) -> bool:
        if account.is_root():
            return False
        if self.report.options.handled("empty"):
            return True
        total = account.xdata.total
        return total is not None and not total.is_zero()

    def _layout(self) -> list[tuple[Account, str, int]]:
        tree = self.report.journal.accounts
        flat = self.report.options.handled("flat")
        candidates = {a.index for a in self.accounts if self._is_candidate(a)}

        if flat:
            return [(a, a.fullname, 0) for a in self.accounts if a.index in candidates]

        elided = set()
        for index in candidates:
            account = tree[index]
            children = [c for c in tree.children_of(account) if c.index in candidates]
            if len(children) == 1 and account.xdata.count == 0:
                elided.add(index)

        rows = []
        for account in self.accounts:
            if account.index not in candidates or account.index in elided:
                continue
            shown = [
                a
                for a in tree.ancestors(account)
                if a.index in candidates and a.index not in elided
            ]
            top = shown[0] if shown else None
            rows.append((account, tree.partial_name(account, top), len(shown)))
        return rows

    def flush(self) -> None:
        tree = self.report.journal.accounts
        rows = self._layout()
        for account, name, depth in rows:
            scope = SymbolScope(
                AccountScope(self.report, account, tree),
                {"partial_account": name, "depth_spacer": "  " * depth},
            )
            self.write(self.format.render(scope))
            account.xdata.displayed = True

        top_level = [row for row in rows if row[2] == 0]
        if len(top_level) > 1 and not self.report.options.handled("no_total"):
            scope = SymbolScope(
                AccountScope(self.report, tree.root, tree),
                {"partial_account": "", "depth_spacer": ""},
            )
            total = self.format.render(scope)
            self.write(self.SEPARATOR + "\n")
            self.write("\n".join(line.rstrip() for line in total.split("\n")))
        self.accounts = []
        super().flush()


class FormatEquity(Handler):
    """
    Print account balances as one opening-balances entry.

    Every account with a non-zero direct value gets a posting; a final
    posting to ``Equity:Opening Balances`` balances the entry.
    """

    def __init__(self, report: Report, format_text: str):
        super().__init__(report)
        self.printer = PrintEntries(report, format_text)
        self.accounts: list[Account] = []

    def accept(self, item: Account) -> None:
        value = item.xdata.value
        if not item.is_root() and value is not None and not value.is_zero():
            self.accounts.append(item)

    def flush(self) -> None:
        moment: date = self.report.options.value("end_") or self.report.today()
        entry = Entry(date=moment, payee=EQUITY_PAYEE, state=PostingState.CLEARED)
        balance = None
        for account in self.accounts:
            for amount in to_balance(account.xdata.value).amounts:
                entry.add_posting(Posting(account=account, amount=amount))
                balance = add_values(balance, amount)
        if balance is not None:
            equity = temporary_account(EQUITY_ACCOUNT)
            for amount in to_balance(balance).amounts:
                entry.add_posting(Posting(account=equity, amount=-amount))
        for posting in entry.postings:
            self.printer.accept(posting)
        self.accounts = []
        self.printer.flush()


def _elisp_string(value: Any) -> str:
    text = to_string(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


_ELISP_STATE = {
    PostingState.CLEARED: "t",
    PostingState.PENDING: "pending",
    PostingState.UNCLEARED: "nil",
}


class FormatEmacs(Handler):
    """Write postings as Emacs Lisp s-expressions, one list per entry."""

    def __init__(self, report: Report):
        super().__init__(report)
        self.last_entry: Entry | None = None
        self.started = False

    def accept(self, item: Posting) -> None:
        entry = item.entry
        if entry is not self.last_entry:
            self.write(")\n " if self.started else "(")
            self.started = True
            date_format = self.report.options.value("date_format_")
            code = _elisp_string(entry.code) if entry.code else "nil"
            self.write(f"({_elisp_string(entry.date.strftime(date_format))} {code} ")
            self.write(_elisp_string(item.payee))
            self.last_entry = entry
        self.write(
            f"\n  ({_elisp_string(item.display_account.fullname)} "
            f"{_elisp_string(item.report_amount)} {_ELISP_STATE[item.effective_state]}"
        )
        if item.note:
            self.write(f" {_elisp_string(item.note)}")
        self.write(")")
        item.xdata.displayed = True

    def flush(self) -> None:
        if self.started:
            self.write("))\n")
        self.started = False
        self.last_entry = None
        super().flush()


class GatherStatistics(Handler):
    """
    Summarize the posting stream: time span, payees, accounts, activity.

    Postings are collected into a pandas DataFrame and summarized at flush.
    """

    def __init__(self, report: Report):
        super().__init__(report)
        self.rows: list[dict[str, Any]] = []

    def accept(self, item: Posting) -> None:
        amount = item.amount
        commodity = ""
        if isinstance(amount, Amount) and amount.commodity:
            commodity = amount.commodity.symbol
        self.rows.append(
            {
                "date": pd.Timestamp(item.effective_date),
                "entry": id(item.entry),
                "payee": item.payee,
                "account": item.display_account.fullname,
                "commodity": commodity,
                "state": item.effective_state.value,
            }
        )

    def summary(self) -> dict[str, Any]:
        """Statistics of the collected postings as a plain dict."""
        df = pd.DataFrame(
            self.rows, columns=["date", "entry", "payee", "account", "commodity", "state"]
        )
        if df.empty:
            return {"postings": 0}
        today = pd.Timestamp(self.report.today())
        first, last = df["date"].min(), df["date"].max()
        days = max((last - first).days, 1)
        month_start = today.to_period("M").start_time
        gaps = np.diff(np.sort(df["date"].to_numpy())) / np.timedelta64(1, "D")
        return {
            "first": first.date(),
            "last": last.date(),
            "days": days,
            "sources": list(self.report.journal.sources),
            "payees": df["payee"].nunique(),
            "accounts": df["account"].nunique(),
            "commodities": df.loc[df["commodity"] != "", "commodity"].nunique(),
            "entries": df["entry"].nunique(),
            "postings": len(df),
            "per_day": len(df) / days,
            "average_gap": float(np.mean(gaps)) if len(gaps) else 0.0,
            "uncleared": int((df["state"] != PostingState.CLEARED.value).sum()),
            "days_since_last": (today - last).days,
            "last_7_days": int((df["date"] > today - pd.Timedelta(days=7)).sum()),
            "last_30_days": int((df["date"] > today - pd.Timedelta(days=30)).sum()),
            "this_month": int((df["date"] >= month_start).sum()),
        }

    def flush(self) -> None:
        stats = self.summary()
        self.rows = []
        if not stats["postings"]:
            self.write("No postings found.\n")
            super().flush()
            return
        date_format = self.report.options.value("date_format_")
        lines = [
            f"Time period: {stats['first'].strftime(date_format)} to "
            f"{stats['last'].strftime(date_format)} ({stats['days']} days)",
            "",
        ]
        if stats["sources"]:
            lines.append("  Files these postings came from:")
            lines.extend(f"    {source}" for source in stats["sources"])
            lines.append("")
        lines += [
            f"  Unique payees:          {stats['payees']}",
            f"  Unique accounts:        {stats['accounts']}",
            f"  Unique commodities:     {stats['commodities']}",
            "",
            f"  Number of entries:      {stats['entries']}",
            f"  Number of postings:     {stats['postings']} ({stats['per_day']:.1f} per day)",
            f"  Uncleared postings:     {stats['uncleared']}",
            f"  Average days between:   {stats['average_gap']:.1f}",
            "",
            f"  Days since last post:   {stats['days_since_last']}",
            f"  Posts in last 7 days:   {stats['last_7_days']}",
            f"  Posts in last 30 days:  {stats['last_30_days']}",
            f"  Posts seen this month:  {stats['this_month']}",
        ]
        self.write("\n".join(lines) + "\n")
        super().flush()
