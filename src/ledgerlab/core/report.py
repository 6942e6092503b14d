"""
Report: option state plus the report drivers.

A ``Report`` is the scope every report expression is evaluated in. It owns
the option cells, resolves names (after giving the session first refusal)
and drives the postings, accounts and commodities reports through freshly
built chains. Every driver resets the transient caches of postings and
accounts when it finishes, whether or not the run raised.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import date
from functools import partial
from typing import IO, Any

from .accounts import Account
from .aggregator import sum_all_accounts
from .amount import KeepDetails
from .chain import build_account_chain, build_posting_chain
from .errors import EvaluationError
from .expr import Expr
from .journal import Entry, Journal
from .options import OptionReader, Options
from .output import Handler
from .query import args_to_predicate
from .resolver import (
    Command,
    CommandSpec,
    Function,
    Option,
    PreCommand,
    ReportMode,
    Resolution,
    Resolver,
)
from .scope import AccountScope, CallArgs, Scope
from .session import Session
from .values import SortKey, to_sequence
from .walkers import basic_accounts, commodity_posts, entry_posts, journal_posts, sorted_accounts

logger = logging.getLogger(__name__)

DATE_WIDTH = 10
AMOUNT_WIDTH = 12
TOTAL_WIDTH = 12


def _has_postings(account: Account) -> bool:
    return account.xdata.count > 0


class Report(Scope):
    """
    Option state and drivers for one reporting session.

    Attributes:
        session: Outer scope owning the journal
        options: Report option cells
        resolver: Classifies names against the registration tables
        output_stream: Where handlers write (stdout by default)

    **Example Usage:**
        ```python
        report = Report(Session(journal))
        report.options["limit_"].on("account =~ /Food/")
        report.lookup("cmd_register")(CallArgs())
        ```
    """

    def __init__(self, session: Session, output_stream: IO[str] | None = None):
        super().__init__(session)
        self.session = session
        self.options = Options()
        self.resolver = Resolver(self.options)
        self.output_stream = output_stream if output_stream is not None else sys.stdout
        self._exprs: dict[str, Expr] = {}

    @property
    def journal(self) -> Journal:
        return self.session.journal

    def today(self) -> date:
        return self.session.today()

    def _compiled(self, source: str) -> Expr:
        if source not in self._exprs:
            self._exprs[source] = Expr(source).compile()
        return self._exprs[source]

    @property
    def amount_expr(self) -> Expr:
        return self._compiled(self.options.value("amount_"))

    @property
    def total_expr(self) -> Expr:
        return self._compiled(self.options.value("total_"))

    @property
    def display_amount_expr(self) -> Expr:
        return self._compiled(self.options.value("display_amount_"))

    @property
    def display_total_expr(self) -> Expr:
        return self._compiled(self.options.value("display_total_"))

    def what_to_keep(self) -> KeepDetails:
        """Which lot details survive ``strip``, from the ``lot*`` options."""
        lots = self.options.handled("lots")
        return KeepDetails(
            keep_price=lots or self.options.handled("lot_prices"),
            keep_date=lots or self.options.handled("lot_dates"),
            keep_tag=lots or self.options.handled("lot_tags"),
        )

    # --- name resolution ---------------------------------------------------

    def bind(self, resolution: Resolution) -> Any | None:
        """Turn a classification into something an expression can call."""
        if isinstance(resolution, Function):
            return partial(resolution.target, self)
        if isinstance(resolution, Command):
            return self.command(resolution.name, resolution.spec)
        if isinstance(resolution, PreCommand):
            return partial(resolution.target, self)
        if isinstance(resolution, Option):
            return resolution.cell if resolution.writable else OptionReader(resolution.cell)
        return None

    def lookup(self, name: str) -> Any | None:
        if self.session is not None:
            found = self.session.lookup(name)
            if found is not None:
                return found
        return self.bind(self.resolver.classify(name))

    def command(self, name: str, spec: CommandSpec) -> Callable[[CallArgs], Any]:
        if spec.mode == ReportMode.SESSION:
            return self.session.reload
        return Reporter(self, spec.handler, spec.mode, name)

    # --- formats -----------------------------------------------------------

    def report_format(self, option: str) -> str:
        """The ``format_`` override when set, otherwise the named format option."""
        if self.options.handled("format_"):
            return self.options.value("format_")
        if option == "register_format_" and not self.options.handled(option):
            return self.register_format()
        return self.options.value(option)

    def register_format(self) -> str:
        """
        Register format sized to ``columns_``.

        The date, amount and total columns have fixed widths (overridable by
        their ``*_width_`` options); payee and account share what is left.
        Postings after the first of an entry leave date and payee blank.
        """
        options = self.options
        date_w = options.value("date_width_") or DATE_WIDTH
        amount_w = options.value("amount_width_") or AMOUNT_WIDTH
        total_w = options.value("total_width_") or TOTAL_WIDTH
        rest = max(options.value("columns_") - date_w - amount_w - total_w - 4, 2)
        payee_w = options.value("payee_width_") or rest // 2
        account_w = options.value("account_width_") or rest - payee_w

        columns = (
            f"%-{account_w}.{account_w}(truncate(account, {account_w})) "
            f"%{amount_w}(display_amount) %{total_w}(display_total)\n"
        )
        first = f"%-{date_w}.{date_w}(format_date(date)) %-{payee_w}.{payee_w}(payee) "
        following = " " * (date_w + payee_w + 2)
        return first + columns + "%/" + following + columns

    # --- drivers -----------------------------------------------------------

    def posts_report(self, handler: Handler) -> None:
        chain = build_posting_chain(self, handler)
        try:
            chain.run(journal_posts(self.journal))
        finally:
            self.journal.clear_xdata()

    def entry_report(self, handler: Handler, entry: Entry) -> None:
        chain = build_posting_chain(self, handler)
        try:
            chain.run(entry_posts(entry))
        finally:
            self.journal.clear_xdata()

    def commodities_report(self, handler: Handler) -> None:
        chain = build_posting_chain(self, handler)
        try:
            chain.run(commodity_posts(self.journal))
        finally:
            self.journal.clear_xdata()

    def accounts_report(self, handler: Handler) -> None:
        """Compute account totals, then walk the tree into ``handler``."""
        tree = self.journal.accounts
        try:
            sum_all_accounts(self)
            sort = self.options.value("sort_")
            flat = self.options.handled("flat")
            if sort or flat:
                key = self._compiled(sort) if sort else None

                def sort_key(account):
                    if key is None:
                        return 0
                    return SortKey(to_sequence(key.calc(AccountScope(self, account, tree))))

                # flat listings show only accounts with postings of their own
                keep = None if self.options.handled("empty") else _has_postings
                walker = sorted_accounts(tree, sort_key, flat=flat, keep=keep)
            else:
                walker = basic_accounts(tree)
            build_account_chain(self, handler).run(walker)
        finally:
            self.journal.clear_xdata()


class Reporter:
    """
    A report command bound to its report, handler factory and driving mode.

    Calling it with query arguments replaces ``limit_`` with the predicate
    they compile to, then runs the report with a fresh handler.
    """

    def __init__(
        self,
        report: Report,
        handler: Callable[[Report], Handler],
        mode: str,
        name: str = "",
    ):
        self.report = report
        self.handler = handler
        self.mode = mode
        self.name = name

    def __call__(self, args: CallArgs) -> bool:
        report = self.report
        try:
            if len(args):
                predicate = args_to_predicate(args)
                report.options["limit_"].on(predicate, source=f"cmd_{self.name}")
                logger.debug("Installed predicate for %s: %s", self.name, predicate)
            handler = self.handler(report)
            if self.mode == ReportMode.ACCOUNTS:
                report.accounts_report(handler)
            elif self.mode == ReportMode.COMMODITIES:
                report.commodities_report(handler)
            else:
                report.posts_report(handler)
        except EvaluationError as e:
            raise e.add_context(f"While running report command '{self.name}'")
        return True

    def __repr__(self) -> str:
        return f"Reporter({self.name!r}, mode={self.mode!r})"
