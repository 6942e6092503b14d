"""
Evaluation scopes and the call-argument protocol.

Identifiers inside an expression are resolved by walking a chain of scopes,
innermost first: the item being evaluated (a posting or an account), then the
report, then the session. Each scope answers ``lookup(name)`` with a value, an
invocable taking ``CallArgs``, or None when it does not know the name.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .amount import Amount
from .errors import ExpressionError
from .journal import PostingState

if TYPE_CHECKING:
    from .accounts import Account, AccountTree
    from .journal import Posting


class Scope:
    """Base scope: delegates every lookup to its parent."""

    def __init__(self, parent: Scope | None = None):
        self.parent = parent

    def lookup(self, name: str) -> Any | None:
        if self.parent is None:
            return None
        return self.parent.lookup(name)


class SymbolScope(Scope):
    """Scope holding explicitly defined symbols."""

    def __init__(self, parent: Scope | None = None, symbols: dict[str, Any] | None = None):
        super().__init__(parent)
        self.symbols: dict[str, Any] = dict(symbols or {})

    def define(self, name: str, value: Any) -> None:
        self.symbols[name] = value

    def lookup(self, name: str) -> Any | None:
        if name in self.symbols:
            return self.symbols[name]
        return super().lookup(name)


class CallArgs(Sequence):
    """
    Immutable, 0-indexed view of the arguments of one invocation.

    Index 0 is the subject when a function is called method-style
    (``x.f(a)`` is ``f(x, a)``). Optional arguments are detected with
    ``has(index)``, never by testing for a null value.

    Attributes:
        scope: Scope the call was made from
    """

    __slots__ = ("_values", "scope")

    def __init__(self, values: Sequence[Any] = (), scope: Scope | None = None):
        self._values = tuple(values)
        self.scope = scope

    def __getitem__(self, index):
        if isinstance(index, slice):
            return CallArgs(self._values[index], self.scope)
        if not -len(self._values) <= index < len(self._values):
            raise ExpressionError(
                f"Too few arguments: argument {index} requested, {len(self._values)} given"
            )
        return self._values[index]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def has(self, index: int) -> bool:
        return 0 <= index < len(self._values)

    def get(self, index: int, default: Any = None) -> Any:
        return self._values[index] if self.has(index) else default

    @property
    def subject(self) -> Any:
        return self[0]

    def __repr__(self) -> str:
        return f"CallArgs({list(self._values)!r})"


def find_scope(scope: Scope | None, kind: type) -> Any | None:
    """Nearest scope in the chain that is an instance of ``kind``."""
    while scope is not None:
        if isinstance(scope, kind):
            return scope
        scope = scope.parent
    return None


def _posting_price(posting: Posting) -> Amount:
    if posting.cost is not None and posting.amount and not posting.amount.is_zero():
        return Amount(abs(posting.cost.quantity / posting.amount.quantity), posting.cost.commodity)
    return posting.amount


def _posting_commodity(posting: Posting) -> str:
    commodity = getattr(posting.amount, "commodity", None)
    return commodity.symbol if commodity is not None else ""


_POSTING_FIELDS: dict[str, Callable[[Posting], Any]] = {
    "account": lambda p: p.display_account.fullname,
    "account_base": lambda p: p.display_account.name,
    "actual": lambda p: p.actual,
    "amount": lambda p: p.report_amount,
    "cleared": lambda p: p.effective_state is PostingState.CLEARED,
    "code": lambda p: (p.entry.code or "") if p.entry else "",
    "commodity": _posting_commodity,
    "cost": lambda p: p.cost_amount(),
    "count": lambda p: p.xdata.count,
    "date": lambda p: p.effective_date,
    "depth": lambda p: p.display_account.depth,
    "note": lambda p: p.note or (p.entry.note if p.entry and p.entry.note else ""),
    "payee": lambda p: p.payee,
    "pending": lambda p: p.effective_state is PostingState.PENDING,
    "price": _posting_price,
    "real": lambda p: p.real,
    "total": lambda p: p.xdata.total if p.xdata.total is not None else p.report_amount,
    "uncleared": lambda p: p.effective_state is PostingState.UNCLEARED,
    "virtual": lambda p: p.virtual,
}


class PostingScope(Scope):
    """Scope exposing the fields of one posting."""

    FIELDS = _POSTING_FIELDS

    def __init__(self, parent: Scope | None, posting: Posting):
        super().__init__(parent)
        self.posting = posting

    def lookup(self, name: str) -> Any | None:
        accessor = self.FIELDS.get(name)
        if accessor is not None:
            return accessor(self.posting)
        return super().lookup(name)


def _account_amount(account: Account) -> Any:
    return account.xdata.value if account.xdata.value is not None else Amount(0)


def _account_total(account: Account) -> Any:
    return account.xdata.total if account.xdata.total is not None else Amount(0)


_ACCOUNT_FIELDS: dict[str, Callable[[Account], Any]] = {
    "account": lambda a: a.fullname,
    "account_base": lambda a: a.name,
    "amount": _account_amount,
    "count": lambda a: a.xdata.total_count,
    "depth": lambda a: a.depth,
    "note": lambda a: a.note or "",
    "total": _account_total,
}


class AccountScope(Scope):
    """Scope exposing the fields of one account."""

    FIELDS = _ACCOUNT_FIELDS

    def __init__(self, parent: Scope | None, account: Account, tree: AccountTree | None = None):
        super().__init__(parent)
        self.account = account
        self.tree = tree

    def lookup(self, name: str) -> Any | None:
        accessor = self.FIELDS.get(name)
        if accessor is not None:
            return accessor(self.account)
        if name == "parent" and self.tree is not None:
            parent = self.tree.parent_of(self.account)
            return parent.fullname if parent is not None else ""
        return super().lookup(name)


def as_int(value: Any, default: int = 0) -> int:
    """Integer view of an argument (amounts and numbers alike)."""
    if value is None:
        return default
    if isinstance(value, Amount):
        return int(value.quantity)
    if isinstance(value, (int, Decimal)):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise ExpressionError(f"Expected an integer, got {value!r}")
