"""
Account totals for the accounts-domain reports.

Totals are computed in two phases: every selected posting adds its
``amount_expr`` into its own account's direct value, then one post-order
pass rolls each account's value up into its ancestors. The pass reads only
the cache it resets first, so running it twice gives the same totals.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .accounts import AccountTree
from .chain import build_posting_chain
from .journal import Posting
from .scope import PostingScope
from .values import add_values
from .walkers import journal_posts

if TYPE_CHECKING:
    from .report import Report

logger = logging.getLogger(__name__)


class SetAccountValue:
    """Terminal collecting each posting's amount into its account's direct value."""

    def __init__(self, report: Report):
        self.report = report
        self.amount_expr = report.amount_expr

    def accept(self, item: Posting) -> None:
        account = item.account
        amount = self.amount_expr.calc(PostingScope(self.report, item))
        account.xdata.value = add_values(account.xdata.value, amount)
        account.xdata.count += 1
        account.xdata.visited = True
        item.xdata.visited = True

    def flush(self) -> None:
        pass


def roll_up_totals(tree: AccountTree) -> None:
    """Set every account's total to its value plus its children's totals."""
    for account in tree.post_order():
        total = account.xdata.value
        total_count = account.xdata.count
        for child in tree.children_of(account):
            total = add_values(total, child.xdata.total)
            total_count += child.xdata.total_count
            if child.xdata.visited:
                account.xdata.visited = True
        account.xdata.total = total
        account.xdata.total_count = total_count


def sum_all_accounts(report: Report) -> None:
    """
    Compute direct values and totals of every account for ``report``.

    Resets the account caches, runs the journal through the preliminary
    chain (state, date and ``limit_`` selection, then valuation) into a
    collector, and rolls the direct values up the tree.

    Args:
        report: Report whose options select and value the postings
    """
    journal = report.journal
    tree = journal.accounts
    tree.clear_xdata()
    logger.debug("Account totals reset for %d accounts", len(tree))

    chain = build_posting_chain(report, SetAccountValue(report), preliminary=True)
    chain.run(journal_posts(journal))
    roll_up_totals(tree)
    logger.debug("Root total: %s", tree.root.xdata.total)
