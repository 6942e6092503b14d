"""
Commodities, amounts and multi-commodity balances for LedgerLab.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from .errors import CommodityError, ValueTypeError
from .prices import PriceHistory, exchange_rate

Number = int | Decimal


@dataclass(frozen=True)
class Annotation:
    """
    Lot details attached to an amount.

    Attributes:
        price: Per-unit acquisition price
        date: Acquisition date
        tag: Free-form lot tag
    """

    price: Amount | None = None
    date: date | None = None
    tag: str | None = None

    def __bool__(self) -> bool:
        return self.price is not None or self.date is not None or self.tag is not None

    def __str__(self) -> str:
        parts = []
        if self.price is not None:
            parts.append(f"{{{self.price}}}")
        if self.date is not None:
            parts.append(f"[{self.date.isoformat()}]")
        if self.tag is not None:
            parts.append(f"({self.tag})")
        return " ".join(parts)


@dataclass(frozen=True)
class KeepDetails:
    """Which lot annotations survive ``strip_annotations``."""

    keep_price: bool = False
    keep_date: bool = False
    keep_tag: bool = False

    def keep_all(self) -> bool:
        return self.keep_price and self.keep_date and self.keep_tag

    def keep_any(self) -> bool:
        return self.keep_price or self.keep_date or self.keep_tag

    def apply(self, annotation: Annotation | None) -> Annotation | None:
        """Return the part of ``annotation`` this policy keeps (None if nothing)."""
        if annotation is None or not self.keep_any():
            return None
        kept = Annotation(
            price=annotation.price if self.keep_price else None,
            date=annotation.date if self.keep_date else None,
            tag=annotation.tag if self.keep_tag else None,
        )
        return kept if kept else None


class Commodity:
    """
    Commodity definition with display style and price history.

    Attributes:
        symbol: Commodity symbol (e.g., '$', 'EUR', 'AAPL')
        precision: Display precision, widened as more precise amounts are parsed
        prefix: Whether the symbol is printed before the quantity
        prices: Dated quotes used for market valuation
    """

    def __init__(self, symbol: str, precision: int = 0, prefix: bool | None = None):
        self.symbol = symbol
        self.precision = precision
        self.prefix = (not symbol[:1].isalpha()) if prefix is None else prefix
        self.prices = PriceHistory()

    def learn_precision(self, quantity: Decimal) -> None:
        exponent = quantity.as_tuple().exponent
        if isinstance(exponent, int) and -exponent > self.precision:
            self.precision = -exponent

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Commodity):
            return NotImplemented
        return self.symbol == other.symbol

    def __hash__(self) -> int:
        return hash(self.symbol)

    def __str__(self) -> str:
        return self.symbol

    def __repr__(self) -> str:
        return f"Commodity('{self.symbol}', precision={self.precision})"


class CommodityPool:
    """Registry of commodities by symbol."""

    def __init__(self) -> None:
        self._commodities: dict[str, Commodity] = {}

    def find(self, symbol: str) -> Commodity | None:
        """Get commodity by symbol."""
        return self._commodities.get(symbol)

    def find_or_create(self, symbol: str) -> Commodity:
        """Get commodity by symbol, registering it on first use."""
        commodity = self._commodities.get(symbol)
        if commodity is None:
            commodity = Commodity(symbol)
            self._commodities[symbol] = commodity
        return commodity

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._commodities

    def __iter__(self):
        return iter(self._commodities.values())

    def __len__(self) -> int:
        return len(self._commodities)


# Default pool, used when amounts are created from bare symbols
COMMODITIES = CommodityPool()


def get_commodity(symbol: str) -> Commodity:
    """Get commodity by symbol from the default pool."""
    return COMMODITIES.find_or_create(symbol)


_AMOUNT_RE = re.compile(
    r"""^\s*(?P<sign>-)?\s*
        (?P<prefix>[^\s\d.,+\-]+?)?\s*
        (?P<sign2>-)?
        (?P<number>\d[\d,]*(?:\.\d*)?|\.\d+)\s*
        (?P<suffix>[^\s\d.,+\-]\S*)?\s*$""",
    re.VERBOSE,
)


class Amount:
    """
    Quantity of a single commodity, optionally annotated with lot details.

    An amount without a commodity is a bare number; it combines freely with
    numbers and, when zero, with any commoditised amount.

    Attributes:
        quantity: Decimal quantity
        commodity: Commodity object (None for a bare number)
        annotation: Lot details (None when unannotated)
    """

    def __init__(
        self,
        quantity: Decimal | int | str | float,
        commodity: Commodity | str | None = None,
        annotation: Annotation | None = None,
    ):
        if isinstance(commodity, str):
            commodity = get_commodity(commodity)
        if not isinstance(quantity, Decimal):
            try:
                quantity = Decimal(str(quantity))
            except InvalidOperation as e:
                raise ValueTypeError(f"Cannot convert {quantity!r} to an amount") from e

        self.quantity = quantity
        self.commodity = commodity
        self.annotation = annotation or None

    @classmethod
    def parse(cls, text: str, pool: CommodityPool | None = None) -> Amount:
        """
        Parse an amount such as ``$10.00``, ``-15 EUR`` or ``3 AAPL``.

        Raises:
            ValueTypeError: If the text is not a recognisable amount
        """
        match = _AMOUNT_RE.match(text)
        if match is None or (match["prefix"] and match["suffix"]):
            raise ValueTypeError(f"Cannot parse amount from '{text}'")
        quantity = Decimal(match["number"].replace(",", ""))
        if match["sign"] or match["sign2"]:
            quantity = -quantity

        symbol = match["prefix"] or match["suffix"]
        if symbol is None:
            return cls(quantity)
        pool = pool if pool is not None else COMMODITIES
        commodity = pool.find_or_create(symbol.strip('"'))
        if match["prefix"]:
            commodity.prefix = True
        elif match["suffix"]:
            commodity.prefix = False
        commodity.learn_precision(quantity)
        return cls(quantity, commodity)

    @property
    def key(self) -> tuple[str | None, Annotation | None]:
        """Identity used when combining amounts into balances."""
        return (self.commodity.symbol if self.commodity else None, self.annotation)

    def is_zero(self) -> bool:
        return self.quantity == 0

    def sign(self) -> int:
        return (self.quantity > 0) - (self.quantity < 0)

    def number(self) -> Decimal:
        """Bare quantity, discarding the commodity."""
        return self.quantity

    def strip_annotations(self, keep: KeepDetails | None = None) -> Amount:
        if self.annotation is None:
            return self
        kept = (keep or KeepDetails()).apply(self.annotation)
        return Amount(self.quantity, self.commodity, kept)

    def value(
        self, moment: date | None = None, target: Commodity | None = None
    ) -> Amount | None:
        """
        Market value of this amount.

        Args:
            moment: Valuation date (None for the latest quote)
            target: Commodity to value in (None for whatever the latest quote uses)

        Returns:
            The converted amount, or None if no price is known
        """
        if self.commodity is None:
            return None
        if target is None:
            quote = self.commodity.prices.find(moment)
            if quote is None:
                return None
            return Amount(self.quantity * quote.price.quantity, quote.price.commodity)
        rate = exchange_rate(self.commodity, target, moment)
        if rate is None:
            return None
        return Amount(self.quantity * rate, target)

    def _coerce(self, other: object, op: str) -> Amount:
        if isinstance(other, Amount):
            return other
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return Amount(Decimal(other))
        raise ValueTypeError(f"Cannot {op} {type(other).__name__} and an amount")

    def __add__(self, other: object) -> Amount | Balance:
        if isinstance(other, Balance):
            return other + self
        other = self._coerce(other, "add")
        if other.key == self.key:
            return Amount(self.quantity + other.quantity, self.commodity, self.annotation)
        if other.commodity is None and other.is_zero():
            return self
        if self.commodity is None and self.is_zero():
            return other
        if self.commodity is None and other.commodity is None:
            return Amount(self.quantity + other.quantity)
        return Balance([self, other])

    __radd__ = __add__

    def __sub__(self, other: object) -> Amount | Balance:
        if isinstance(other, Balance):
            return -other + self
        return self + -self._coerce(other, "subtract")

    def __rsub__(self, other: object) -> Amount | Balance:
        return -self + other

    def __neg__(self) -> Amount:
        return Amount(-self.quantity, self.commodity, self.annotation)

    def __pos__(self) -> Amount:
        return self

    def __abs__(self) -> Amount:
        return Amount(abs(self.quantity), self.commodity, self.annotation)

    def __mul__(self, other: object) -> Amount:
        other = self._coerce(other, "multiply")
        if self.commodity is not None and other.commodity is not None:
            raise ValueTypeError("Cannot multiply two commoditised amounts")
        return Amount(
            self.quantity * other.quantity,
            self.commodity or other.commodity,
            self.annotation or other.annotation,
        )

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> Amount:
        other = self._coerce(other, "divide")
        if other.is_zero():
            raise ValueTypeError("Divide by zero")
        if other.commodity is not None and other.commodity != self.commodity:
            raise ValueTypeError("Cannot divide by a commoditised amount")
        commodity = None if other.commodity is not None else self.commodity
        return Amount(self.quantity / other.quantity, commodity, self.annotation)

    def _comparable(self, other: object) -> Decimal:
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return Decimal(other)
        if isinstance(other, Amount):
            if (
                self.commodity is not None
                and other.commodity is not None
                and self.commodity != other.commodity
            ):
                raise ValueTypeError(
                    f"Cannot compare amounts in different commodities: "
                    f"{self.commodity} and {other.commodity}"
                )
            return other.quantity
        raise ValueTypeError(f"Cannot compare an amount with {type(other).__name__}")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Balance):
            return other == self
        if isinstance(other, Amount):
            if self.is_zero() and other.is_zero():
                return True
            return self.quantity == other.quantity and self.key == other.key
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return self.quantity == other
        return NotImplemented

    def __hash__(self) -> int:
        if self.is_zero():
            return hash(0)
        return hash((self.quantity, self.key))

    def __lt__(self, other: object) -> bool:
        return self.quantity < self._comparable(other)

    def __le__(self, other: object) -> bool:
        return self.quantity <= self._comparable(other)

    def __gt__(self, other: object) -> bool:
        return self.quantity > self._comparable(other)

    def __ge__(self, other: object) -> bool:
        return self.quantity >= self._comparable(other)

    def __bool__(self) -> bool:
        return not self.is_zero()

    def to_string(self, keep_annotation: bool = True) -> str:
        if self.commodity is None:
            return format(self.quantity.normalize(), "f") if self.quantity else "0"
        quantum = Decimal(1).scaleb(-self.commodity.precision)
        quantity = self.quantity.quantize(quantum)
        number = f"{abs(quantity):,f}"
        sign = "-" if quantity < 0 else ""
        if self.commodity.prefix:
            text = f"{sign}{self.commodity.symbol}{number}"
        else:
            text = f"{sign}{number} {self.commodity.symbol}"
        if keep_annotation and self.annotation:
            text = f"{text} {self.annotation}"
        return text

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Amount({self.quantity}, {self.commodity and self.commodity.symbol!r})"


class Balance:
    """
    Sum of amounts in several commodities.

    Zero components are dropped, so an empty balance is zero.
    """

    def __init__(self, amounts: list[Amount] | tuple[Amount, ...] = ()):
        self._amounts: dict[tuple, Amount] = {}
        for amount in amounts:
            self._add_amount(amount)

    def _add_amount(self, amount: Amount) -> None:
        key = amount.key
        if key in self._amounts:
            total = self._amounts[key].quantity + amount.quantity
            amount = Amount(total, amount.commodity, amount.annotation)
        if amount.is_zero():
            self._amounts.pop(key, None)
        else:
            self._amounts[key] = amount

    @property
    def amounts(self) -> list[Amount]:
        """Components ordered by commodity symbol."""
        return sorted(
            self._amounts.values(),
            key=lambda a: (a.commodity.symbol if a.commodity else "", str(a.annotation or "")),
        )

    def is_zero(self) -> bool:
        return not self._amounts

    def single_amount(self) -> Amount | None:
        """The only component, if there is exactly one."""
        if len(self._amounts) == 1:
            return next(iter(self._amounts.values()))
        return None

    def simplified(self) -> Amount | Balance:
        """Collapse to an Amount when zero or single-commodity."""
        if self.is_zero():
            return Amount(0)
        return self.single_amount() or self

    def copy(self) -> Balance:
        return Balance(list(self._amounts.values()))

    def strip_annotations(self, keep: KeepDetails | None = None) -> Balance:
        return Balance([a.strip_annotations(keep) for a in self._amounts.values()])

    def value(
        self, moment: date | None = None, target: Commodity | None = None
    ) -> Balance | None:
        converted = []
        found = False
        for amount in self._amounts.values():
            valued = amount.value(moment, target)
            found = found or valued is not None
            converted.append(valued if valued is not None else amount)
        return Balance(converted) if found else None

    def __add__(self, other: object) -> Balance:
        result = self.copy()
        if isinstance(other, Balance):
            for amount in other._amounts.values():
                result._add_amount(amount)
        elif isinstance(other, Amount):
            result._add_amount(other)
        elif isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            if other != 0:
                result._add_amount(Amount(Decimal(other)))
        else:
            raise ValueTypeError(f"Cannot add {type(other).__name__} to a balance")
        return result

    __radd__ = __add__

    def __sub__(self, other: object) -> Balance:
        return self + -other

    def __rsub__(self, other: object) -> Balance:
        return -self + other

    def __neg__(self) -> Balance:
        return Balance([-a for a in self._amounts.values()])

    def __abs__(self) -> Balance:
        return Balance([abs(a) for a in self._amounts.values()])

    def __truediv__(self, other: object) -> Balance:
        return Balance([a / other for a in self._amounts.values()])

    def __mul__(self, other: object) -> Balance:
        return Balance([a * other for a in self._amounts.values()])

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Balance):
            return self._amounts == other._amounts
        if isinstance(other, Amount):
            if other.is_zero():
                return self.is_zero()
            single = self.single_amount()
            if single is None:
                return False
            return single.quantity == other.quantity and single.key == other.key
        if isinstance(other, (int, Decimal)) and not isinstance(other, bool):
            return other == 0 and self.is_zero()
        return NotImplemented

    def __hash__(self) -> int:
        if len(self._amounts) <= 1:
            return hash(self.simplified())
        return hash(tuple(sorted((str(k), a.quantity) for k, a in self._amounts.items())))

    def __bool__(self) -> bool:
        return not self.is_zero()

    def __iter__(self):
        return iter(self.amounts)

    def __len__(self) -> int:
        return len(self._amounts)

    def __str__(self) -> str:
        if self.is_zero():
            return "0"
        return ", ".join(str(a) for a in self.amounts)

    def __repr__(self) -> str:
        return f"Balance({[str(a) for a in self.amounts]})"


def parse_amount(text: str, pool: CommodityPool | None = None) -> Amount:
    """Parse an amount from text using ``pool`` (default pool when omitted)."""
    return Amount.parse(text, pool)


def market_value(
    amount: Amount | Balance,
    moment: date | None = None,
    target: Commodity | None = None,
) -> Amount | Balance:
    """
    Market value of an amount or balance, raising when a requested target
    commodity cannot be reached.

    Raises:
        CommodityError: If ``target`` is given and no quote converts into it
    """
    valued = amount.value(moment, target)
    if valued is None:
        if target is not None and not _already_in(amount, target):
            raise CommodityError(f"No price known to convert {amount} into {target}")
        return amount
    return valued


def _already_in(amount: Amount | Balance, target: Commodity) -> bool:
    if isinstance(amount, Amount):
        return amount.commodity == target or amount.is_zero()
    return all(a.commodity == target for a in amount.amounts)
