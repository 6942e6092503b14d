"""
Commodity price history and market valuation.

Each commodity keeps a ``PriceHistory`` of quotes: on a given date one unit of
the commodity was worth some ``Amount`` of another commodity. Market valuation
looks up the latest quote at or before the requested moment, trying direct
quotes first and the inverse of quotes in the opposite direction second.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .amount import Amount, Commodity


@dataclass(frozen=True)
class PriceQuote:
    """A single price point: one unit of the owning commodity is worth ``price``."""

    moment: date
    price: Amount


class PriceHistory:
    """
    Dated quotes for one commodity, kept ordered by date.

    Attributes:
        quotes: Quotes in ascending date order; several quotes may share a date,
            the last one added wins.
    """

    def __init__(self) -> None:
        self.quotes: list[PriceQuote] = []

    def add(self, moment: date, price: Amount) -> None:
        """Record a quote, keeping the list ordered by date."""
        index = bisect_right([q.moment for q in self.quotes], moment)
        self.quotes.insert(index, PriceQuote(moment, price))

    def find(
        self, moment: date | None = None, target: Commodity | None = None
    ) -> PriceQuote | None:
        """
        Find the latest quote at or before ``moment``.

        Args:
            moment: Valuation date (None for the latest quote overall)
            target: Only consider quotes denominated in this commodity

        Returns:
            The matching quote or None if there is none
        """
        for quote in reversed(self.quotes):
            if moment is not None and quote.moment > moment:
                continue
            if target is not None and quote.price.commodity != target:
                continue
            return quote
        return None

    def __len__(self) -> int:
        return len(self.quotes)

    def __iter__(self):
        return iter(self.quotes)


def exchange_rate(
    source: Commodity, target: Commodity, moment: date | None = None
) -> Decimal | None:
    """
    Get the rate converting one unit of ``source`` into ``target``.

    Args:
        source: Commodity being valued
        target: Commodity to express the value in
        moment: Valuation date (None for the latest quote)

    Returns:
        Rate as a Decimal, or None if no direct or inverse quote exists
    """
    if source == target:
        return Decimal(1)

    # Try direct quote
    quote = source.prices.find(moment, target)
    if quote is not None:
        return quote.price.quantity

    # Try inverse quote
    inverse = target.prices.find(moment, source)
    if inverse is not None and inverse.price.quantity != 0:
        return Decimal(1) / inverse.price.quantity

    return None
