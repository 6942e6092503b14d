"""
Tests for the index-based account tree.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st
from ledgerlab.core.accounts import ROOT_INDEX, AccountTree
from ledgerlab.core.errors import AccountTreeError

segment = st.text(alphabet="ABCDEFGHIJ", min_size=1, max_size=3)
account_names = st.lists(segment, min_size=1, max_size=4).map(":".join)


class TestAccountTree:
    """Creation, lookup and traversal of the arena."""

    def test_root_exists(self):
        tree = AccountTree()
        assert len(tree) == 1
        assert tree.root.index == ROOT_INDEX
        assert tree.root.is_root()
        assert tree.root.fullname == ""

    def test_find_or_create_builds_ancestors(self):
        tree = AccountTree()
        food = tree.find_or_create("Expenses:Food:Groceries")

        assert food.name == "Groceries"
        assert food.depth == 3
        assert "Expenses" in tree
        assert "Expenses:Food" in tree
        parent = tree.parent_of(food)
        assert parent.fullname == "Expenses:Food"
        assert [a.fullname for a in tree.ancestors(food)] == ["Expenses:Food", "Expenses", ""]

    def test_find_or_create_is_idempotent(self):
        tree = AccountTree()
        first = tree.find_or_create("Assets:Cash")
        second = tree.find_or_create("Assets:Cash")
        assert first is second
        assert len(tree) == 3

    def test_find_missing_returns_none(self):
        assert AccountTree().find("Nope") is None

    @pytest.mark.parametrize("name", ["Expenses::Food", ":Food", "Expenses:", " "])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(AccountTreeError, match="Invalid account name"):
            AccountTree().find_or_create(name)

    def test_children_in_creation_order(self):
        tree = AccountTree()
        tree.find_or_create("Expenses:Rent")
        tree.find_or_create("Expenses:Food")
        expenses = tree.find("Expenses")
        assert [c.name for c in tree.children_of(expenses)] == ["Rent", "Food"]

    def test_pre_and_post_order(self):
        tree = AccountTree()
        tree.find_or_create("A:B")
        tree.find_or_create("A:C")
        tree.find_or_create("D")

        assert [a.fullname for a in tree.pre_order()] == ["", "A", "A:B", "A:C", "D"]
        assert [a.fullname for a in tree.post_order()] == ["A:B", "A:C", "A", "D", ""]

    def test_partial_name(self):
        tree = AccountTree()
        leaf = tree.find_or_create("Expenses:Food:Groceries")
        top = tree.find("Expenses")
        assert tree.partial_name(leaf, top) == "Food:Groceries"
        assert tree.partial_name(leaf) == "Expenses:Food:Groceries"
        assert tree.partial_name(leaf, tree.root) == "Expenses:Food:Groceries"

    def test_clear_xdata(self):
        tree = AccountTree()
        food = tree.find_or_create("Expenses:Food")
        food.xdata.count = 3
        food.xdata.visited = True
        tree.clear_xdata()
        assert food.xdata.count == 0
        assert food.xdata.visited is False


class TestTreeValidation:
    """Structural invariants checked by ``validate``."""

    def test_valid_tree_passes(self):
        tree = AccountTree()
        tree.find_or_create("Assets:Cash")
        tree.find_or_create("Expenses:Food")
        tree.validate()

    def test_second_root_detected(self):
        tree = AccountTree()
        cash = tree.find_or_create("Assets:Cash")
        cash.parent = None
        with pytest.raises(AccountTreeError, match="exactly one root"):
            tree.validate()

    def test_duplicate_child_detected(self):
        tree = AccountTree()
        cash = tree.find_or_create("Assets:Cash")
        tree.find("Assets").children.append(cash.index)
        with pytest.raises(AccountTreeError):
            tree.validate()

    def test_inconsistent_parent_detected(self):
        tree = AccountTree()
        tree.find_or_create("Assets:Cash")
        food = tree.find_or_create("Expenses:Food")
        food.parent = tree.find("Assets").index
        with pytest.raises(AccountTreeError):
            tree.validate()


@given(st.lists(account_names, min_size=1, max_size=20))
def test_arena_stays_consistent(names):
    """Every created account has one parent that lists it, and the tree validates."""
    tree = AccountTree()
    for name in names:
        tree.find_or_create(name)

    tree.validate()
    for name in names:
        account = tree.find(name)
        assert account is not None
        assert account.fullname == name
        assert account.depth == name.count(":") + 1
    assert len(list(tree.pre_order())) == len(tree)
    assert len(list(tree.post_order())) == len(tree)
