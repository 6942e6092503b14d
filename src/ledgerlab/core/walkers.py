"""
Walkers: one-shot ordered sequences of postings or accounts.

Every walker is a generator feeding each item exactly once. Walkers never own
or modify what they yield.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from .accounts import Account, AccountTree
from .journal import Entry, Journal, Posting


def journal_posts(journal: Journal) -> Iterator[Posting]:
    """All postings of a journal, in journal order."""
    for entry in journal.entries:
        yield from entry.postings


def entry_posts(entry: Entry) -> Iterator[Posting]:
    """All postings of one entry."""
    yield from entry.postings


def commodity_posts(journal: Journal) -> Iterator[Posting]:
    """One representative posting per commodity, in order of first appearance."""
    seen: set[str | None] = set()
    for posting in journal_posts(journal):
        commodity = posting.amount.commodity if posting.amount is not None else None
        symbol = commodity.symbol if commodity is not None else None
        if symbol in seen:
            continue
        seen.add(symbol)
        yield posting


def basic_accounts(tree: AccountTree) -> Iterator[Account]:
    """Accounts in pre-order (parent before children), root first."""
    yield from tree.pre_order()


def sorted_accounts(
    tree: AccountTree,
    key: Callable[[Account], Any],
    flat: bool = False,
    keep: Callable[[Account], bool] | None = None,
) -> Iterator[Account]:
    """
    Accounts ordered by a computed key.

    In hierarchical mode the tree is walked in pre-order with the children of
    every node stably sorted by ``key``; the root comes first. In flat mode
    every non-root account accepted by ``keep`` is placed in one stably sorted
    list, so intermediate and leaf accounts appear side by side.

    Args:
        tree: Account arena to walk
        key: Sort key computed once per account
        flat: Whether to drop the hierarchy
        keep: Selection predicate used in flat mode (all accounts when None)

    Returns:
        Iterator over the accounts in sorted order
    """
    keys: dict[int, Any] = {}

    def key_of(account: Account) -> Any:
        if account.index not in keys:
            keys[account.index] = key(account)
            account.xdata.sort_key = keys[account.index]
        return keys[account.index]

    if flat:
        candidates = [
            account
            for account in tree.pre_order()
            if not account.is_root() and (keep is None or keep(account))
        ]
        yield from sorted(candidates, key=key_of)
        return

    stack = [tree.root]
    while stack:
        node = stack.pop()
        yield node
        children = sorted(tree.children_of(node), key=key_of)
        stack.extend(reversed(children))
