"""
Double-entry journal for LedgerLab.

A ``Journal`` owns its entries, the account tree and the commodity pool.
Entries own their postings; a posting refers back to its entry and to its
account without owning either. Everything is read-only once loaded except the
``xdata`` caches, which report runs write and reset.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from .accounts import Account, AccountTree
from .amount import Amount, Balance, CommodityPool
from .errors import UnbalancedEntryError


class PostingState(Enum):
    """Clearing state of a posting or entry."""

    UNCLEARED = "uncleared"
    PENDING = "pending"
    CLEARED = "cleared"


@dataclass
class PostingXData:
    """
    Transient per-run data written by filter stages.

    Attributes:
        visited: Posting passed the selection stages
        displayed: Posting reached the terminal handler
        count: Running posting count
        total: Running total of the report amounts
        value: Converted amount (market or basis valuation)
        account: Display account (set by collapsing stages)
        date: Display date (set by grouping stages)
        payee: Display payee (set by payee rewriting options)
        sort_key: Cached sort key
    """

    visited: bool = False
    displayed: bool = False
    count: int = 0
    total: Any = None
    value: Any = None
    account: Account | None = None
    date: date | None = None
    payee: str | None = None
    sort_key: Any = None


@dataclass(eq=False)
class Posting:
    """
    A single posting in an entry.

    Attributes:
        account: Target account (not owned)
        amount: Posted amount
        state: Clearing state (defaults to the entry's state)
        virtual: Posting does not have to balance (real = not virtual)
        auto: Posting was generated automatically (actual = not auto)
        date: Own date overriding the entry's date
        cost: Total cost of the amount in another commodity
        note: Free-form note
        entry: Owning entry (back-reference, not owned)
    """

    account: Account
    amount: Amount | None
    state: PostingState | None = None
    virtual: bool = False
    auto: bool = False
    date: date | None = None
    cost: Amount | None = None
    note: str | None = None
    entry: Entry | None = field(default=None, repr=False)
    xdata: PostingXData = field(default_factory=PostingXData, repr=False)

    @property
    def real(self) -> bool:
        return not self.virtual

    @property
    def actual(self) -> bool:
        return not self.auto

    @property
    def effective_state(self) -> PostingState:
        if self.state is not None:
            return self.state
        if self.entry is not None:
            return self.entry.state
        return PostingState.UNCLEARED

    @property
    def effective_date(self) -> date:
        if self.xdata.date is not None:
            return self.xdata.date
        if self.date is not None:
            return self.date
        return self.entry.date

    @property
    def payee(self) -> str:
        if self.xdata.payee is not None:
            return self.xdata.payee
        return self.entry.payee if self.entry is not None else ""

    @property
    def display_account(self) -> Account:
        return self.xdata.account or self.account

    @property
    def report_amount(self) -> Amount | Balance:
        """Amount after valuation stages (the posted amount when none ran)."""
        return self.xdata.value if self.xdata.value is not None else self.amount

    def cost_amount(self) -> Amount:
        """Amount this posting contributes to its entry's balance."""
        return self.cost if self.cost is not None else self.amount

    def clear_xdata(self) -> None:
        self.xdata = PostingXData()

    def __str__(self) -> str:
        return f"{self.account.fullname}: {self.amount}"

    def __repr__(self) -> str:
        return f"Posting(account='{self.account.fullname}', amount={self.amount})"


@dataclass(eq=False)
class Entry:
    """
    A balanced group of postings sharing a date and payee.

    Attributes:
        date: Entry date
        payee: Payee or description
        postings: Owned postings, in file order
        code: Optional check number or code
        note: Optional note
        state: Clearing state inherited by postings without their own
    """

    date: date
    payee: str
    postings: list[Posting] = field(default_factory=list)
    code: str | None = None
    note: str | None = None
    state: PostingState = PostingState.UNCLEARED

    def __post_init__(self):
        for posting in self.postings:
            posting.entry = self

    def add_posting(self, posting: Posting) -> Posting:
        posting.entry = self
        self.postings.append(posting)
        return posting

    def balance(self) -> Balance:
        """Sum of the balancing postings, costs counted in the cost commodity."""
        total = Balance()
        for posting in self.postings:
            if posting.virtual or posting.amount is None:
                continue
            total = total + posting.cost_amount()
        return total

    def finalize(self) -> None:
        """
        Fill a single elided amount and check that the entry balances.

        When exactly one balancing posting has no amount it receives the
        negated remaining balance; a multi-commodity remainder is split into
        one posting per commodity.

        Raises:
            UnbalancedEntryError: If more than one amount is elided or the
                postings do not sum to zero per commodity
        """
        elided = [p for p in self.postings if p.amount is None]
        if len(elided) > 1:
            raise UnbalancedEntryError(
                f"Entry '{self.payee}' on {self.date} has more than one posting without an amount"
            )

        if elided:
            posting = elided[0]
            remainder = -self.balance()
            amounts = remainder.amounts or [Amount(0)]
            posting.amount = amounts[0]
            index = self.postings.index(posting)
            for offset, amount in enumerate(amounts[1:], start=1):
                extra = Posting(
                    account=posting.account,
                    amount=amount,
                    state=posting.state,
                    virtual=posting.virtual,
                    note=posting.note,
                    entry=self,
                )
                self.postings.insert(index + offset, extra)

        remainder = self.balance()
        if not remainder.is_zero():
            raise UnbalancedEntryError(
                f"Entry '{self.payee}' on {self.date} does not balance: {remainder}"
            )

    def __str__(self) -> str:
        lines = [f"{self.date.isoformat()} {self.payee}"]
        for posting in self.postings:
            lines.append(f"    {posting}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Entry(date={self.date}, payee='{self.payee}', postings={len(self.postings)})"


@dataclass
class PeriodicEntry:
    """
    Budget template applied once per period.

    Attributes:
        period: Period expression (e.g. 'monthly', 'every 2 weeks')
        postings: Template postings; their amounts are the budgeted amounts
    """

    period: str
    postings: list[Posting] = field(default_factory=list)


class Journal:
    """
    Container for all entries, the account tree and the commodity pool.

    Attributes:
        entries: Entries in file order
        accounts: Account arena
        commodities: Commodity pool used when parsing amounts
        periodic_entries: Budget templates
        sources: Paths the journal was read from
    """

    def __init__(self, commodities: CommodityPool | None = None):
        self.entries: list[Entry] = []
        self.accounts = AccountTree()
        self.commodities = commodities if commodities is not None else CommodityPool()
        self.periodic_entries: list[PeriodicEntry] = []
        self.sources: list[str] = []

    @property
    def master(self) -> Account:
        """Root of the account tree."""
        return self.accounts.root

    def find_account(self, fullname: str) -> Account:
        return self.accounts.find_or_create(fullname)

    def parse_amount(self, text: str) -> Amount:
        return Amount.parse(text, self.commodities)

    def add_entry(self, entry: Entry) -> Entry:
        """
        Finalize and append an entry.

        Raises:
            UnbalancedEntryError: If the entry does not balance
        """
        entry.finalize()
        self.entries.append(entry)
        return entry

    def add_periodic_entry(self, periodic: PeriodicEntry) -> PeriodicEntry:
        self.periodic_entries.append(periodic)
        return periodic

    def add_price(self, symbol: str, moment: date, price: Amount) -> None:
        """Record a market price for one unit of ``symbol``."""
        self.commodities.find_or_create(symbol).prices.add(moment, price)

    def postings(self) -> Iterator[Posting]:
        for entry in self.entries:
            yield from entry.postings

    def clear_xdata(self) -> None:
        """Reset every per-run cache on postings and accounts."""
        for posting in self.postings():
            posting.clear_xdata()
        self.accounts.clear_xdata()

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Journal(entries={len(self.entries)}, accounts={len(self.accounts)})"
