"""
Account tree for LedgerLab.

Accounts live in an arena (``AccountTree``) and are addressed by a stable
integer index. Each node stores the index of its parent (None for the root)
and an ordered list of child indices; there are no object back-pointers
between nodes.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .errors import AccountTreeError

ROOT_INDEX = 0
SEPARATOR = ":"


@dataclass
class AccountXData:
    """
    Per-run cache attached to an account.

    Attributes:
        value: Sum of the account's own accepted postings
        total: ``value`` plus the totals of every descendant
        count: Number of own accepted postings
        total_count: ``count`` plus the counts of every descendant
        visited: Whether any posting reached this account during the run
        to_display: Set by the display filter for accounts that will be shown
        displayed: Set by the terminal handler once the account was printed
        sort_key: Cached key used by the sorted accounts walker
    """

    value: Any = None
    total: Any = None
    count: int = 0
    total_count: int = 0
    visited: bool = False
    to_display: bool = False
    displayed: bool = False
    sort_key: Any = None


class Account:
    """
    Node of the account tree.

    Attributes:
        index: Stable arena index
        name: Leaf name (e.g. 'Food' for 'Expenses:Food')
        fullname: Colon separated path from the top level
        parent: Arena index of the parent, None for the root
        children: Arena indices of the children, in creation order
        depth: Distance from the root (the root is 0)
        note: Optional free-form note
        xdata: Per-run cache, reset before every accounts report
    """

    def __init__(
        self,
        index: int,
        name: str,
        fullname: str,
        parent: int | None = None,
        depth: int = 0,
    ):
        self.index = index
        self.name = name
        self.fullname = fullname
        self.parent = parent
        self.children: list[int] = []
        self.depth = depth
        self.note: str | None = None
        self.xdata = AccountXData()

    def is_root(self) -> bool:
        return self.parent is None

    def clear_xdata(self) -> None:
        self.xdata = AccountXData()

    def __str__(self) -> str:
        return self.fullname

    def __repr__(self) -> str:
        return f"Account(index={self.index}, fullname='{self.fullname}')"


class AccountTree:
    """
    Arena holding every account of a journal.

    The root always exists at index 0 with an empty name. Accounts are created
    on demand from their full colon-separated names and are never removed.

    **Example Usage:**
        ```python
        tree = AccountTree()
        food = tree.find_or_create("Expenses:Food")
        tree.parent_of(food).fullname  # 'Expenses'
        ```
    """

    def __init__(self) -> None:
        self._nodes: list[Account] = [Account(ROOT_INDEX, "", "")]
        self._by_name: dict[str, int] = {"": ROOT_INDEX}

    @property
    def root(self) -> Account:
        return self._nodes[ROOT_INDEX]

    def __getitem__(self, index: int) -> Account:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Account]:
        return iter(self._nodes)

    def __contains__(self, fullname: str) -> bool:
        return fullname in self._by_name

    def find(self, fullname: str) -> Account | None:
        """Get account by full name, None if it does not exist."""
        index = self._by_name.get(fullname)
        return None if index is None else self._nodes[index]

    def find_or_create(self, fullname: str) -> Account:
        """
        Get account by full name, creating it and any missing ancestors.

        Args:
            fullname: Colon separated account path

        Returns:
            The account node

        Raises:
            AccountTreeError: If the name has an empty path segment
        """
        existing = self.find(fullname)
        if existing is not None:
            return existing

        parts = fullname.split(SEPARATOR)
        if any(not part.strip() for part in parts):
            raise AccountTreeError(f"Invalid account name '{fullname}'")

        parent = self.root
        for depth, part in enumerate(parts, start=1):
            path = SEPARATOR.join(parts[:depth])
            node = self.find(path)
            if node is None:
                node = Account(len(self._nodes), part, path, parent.index, depth)
                self._nodes.append(node)
                self._by_name[path] = node.index
                parent.children.append(node.index)
            parent = node
        return parent

    def parent_of(self, account: Account) -> Account | None:
        return None if account.parent is None else self._nodes[account.parent]

    def children_of(self, account: Account) -> list[Account]:
        return [self._nodes[i] for i in account.children]

    def ancestors(self, account: Account) -> Iterator[Account]:
        """Yield the account's ancestors, nearest first, root last."""
        parent = self.parent_of(account)
        while parent is not None:
            yield parent
            parent = self.parent_of(parent)

    def pre_order(self, start: Account | None = None) -> Iterator[Account]:
        """Yield accounts parent before children, siblings in creation order."""
        stack = [start or self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(self._nodes[i] for i in reversed(node.children))

    def post_order(self, start: Account | None = None) -> Iterator[Account]:
        """Yield accounts children before parent."""
        stack: list[tuple[Account, bool]] = [(start or self.root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            stack.append((node, True))
            stack.extend((self._nodes[i], False) for i in reversed(node.children))

    def partial_name(self, account: Account, top: Account | None = None) -> str:
        """Name of ``account`` relative to ``top`` (full name when omitted)."""
        if top is None or top.is_root():
            return account.fullname
        return account.fullname[len(top.fullname) + 1 :]

    def clear_xdata(self) -> None:
        for node in self._nodes:
            node.clear_xdata()

    def validate(self) -> None:
        """
        Check the structural invariants of the arena.

        Exactly one root, every non-root node has a single parent that lists it
        as a child, and every node is reachable from the root exactly once.

        Raises:
            AccountTreeError: If any invariant is violated
        """
        roots = [n.index for n in self._nodes if n.parent is None]
        if roots != [ROOT_INDEX]:
            raise AccountTreeError(f"Account tree must have exactly one root, found {roots}")

        for node in self._nodes:
            if node.parent is None:
                continue
            if not 0 <= node.parent < len(self._nodes):
                raise AccountTreeError(f"Account '{node.fullname}' has a dangling parent")
            if self._nodes[node.parent].children.count(node.index) != 1:
                raise AccountTreeError(
                    f"Account '{node.fullname}' is not listed exactly once by its parent"
                )

        seen: set[int] = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.index in seen:
                raise AccountTreeError(f"Cycle detected at account '{node.fullname}'")
            seen.add(node.index)
            stack.extend(self._nodes[i] for i in node.children)
            for child in node.children:
                if self._nodes[child].parent != node.index:
                    raise AccountTreeError(
                        f"Account '{self._nodes[child].fullname}' has inconsistent parent"
                    )
        if len(seen) != len(self._nodes):
            raise AccountTreeError("Account tree has unreachable nodes")
