"""
Report options: one declarative table and the cells backing it.

Every option is declared once in ``REPORT_OPTIONS`` with its canonical name,
aliases, single-character flag, kind, default and optional side-effect hook.
Names ending in ``_`` take an argument. An ``Options`` registry builds one
``OptionCell`` per declaration and indexes it by canonical name, alias and
flag; lookups are exact matches only, and every name of an option reaches the
same cell.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from .errors import ExpressionError, OptionValueError, ValueTypeError
from .periods import parse_date
from .scope import CallArgs, as_int
from .values import to_boolean, to_string


class OptionKind(Enum):
    """What an option's argument is converted to."""

    FLAG = "flag"
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


@dataclass(frozen=True)
class OptionSpec:
    """
    Declaration of one option.

    Attributes:
        name: Canonical name (trailing '_' when it takes an argument)
        aliases: Alternative long names reaching the same cell
        flag: Single-character legacy flag, if any
        kind: Argument conversion
        default: Value before the option is set
        hook: Side effect run after the option is set
        accumulate: Repeated command-line settings are AND-ed together
        choices: Accepted values, when restricted
        help: One-line description
    """

    name: str
    aliases: tuple[str, ...] = ()
    flag: str | None = None
    kind: OptionKind = OptionKind.FLAG
    default: Any = None
    hook: Callable[[Options, Any], None] | None = None
    accumulate: bool = False
    choices: tuple[str, ...] = ()
    help: str = ""

    @property
    def takes_argument(self) -> bool:
        return self.name.endswith("_")

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


class OptionCell:
    """
    Mutable backing cell of one option.

    Attributes:
        spec: The option's declaration
        value: Current value (the default until set)
        handled: Whether the option has been set
        source: Where the current value came from (e.g. '--limit', 'opt_limit_')
    """

    def __init__(self, spec: OptionSpec, options: Options | None = None):
        self.spec = spec
        self.options = options
        self.value: Any = spec.default
        self.handled = False
        self.source: str | None = None

    @property
    def name(self) -> str:
        return self.spec.name

    def convert(self, value: Any) -> Any:
        """
        Convert an assigned value to the option's kind.

        Raises:
            OptionValueError: If the value is not acceptable
        """
        kind = self.spec.kind
        try:
            if kind is OptionKind.FLAG:
                return True if value is None else to_boolean(value)
            if value is None:
                raise OptionValueError(self.name, value, "a value is required")
            if kind is OptionKind.NUMBER:
                return as_int(value)
            if kind is OptionKind.DATE:
                if isinstance(value, date):
                    return value
                return parse_date(to_string(value).strip())
            text = to_string(value)
        except (ExpressionError, ValueTypeError) as e:
            raise OptionValueError(self.name, value, e.message) from e
        if self.spec.choices and text not in self.spec.choices:
            raise OptionValueError(
                self.name, value, f"expected one of {', '.join(self.spec.choices)}"
            )
        return text

    def on(self, value: Any = None, source: str | None = None) -> OptionCell:
        """Set the option (flags ignore ``value``) and run its hook."""
        converted = self.convert(value)
        if self.spec.kind is OptionKind.FLAG and not converted:
            return self.off()
        self.value = converted
        self.handled = True
        self.source = source
        if self.spec.hook is not None and self.options is not None:
            self.spec.hook(self.options, converted)
        return self

    def append(self, value: Any, source: str | None = None) -> OptionCell:
        """Set the option, AND-ing with the previous value when it accumulates."""
        if self.handled and self.spec.accumulate and self.value:
            value = f"({self.value}) & ({to_string(value)})"
        return self.on(value, source)

    def off(self) -> OptionCell:
        self.value = self.spec.default
        self.handled = False
        self.source = None
        return self

    def str(self) -> str:
        return to_string(self.value)

    def __call__(self, args: CallArgs) -> Any:
        """Read/write access: with an argument the cell is set, otherwise read."""
        if args.has(0):
            self.on(args[0], source=f"opt_{self.name}")
            return True
        return self.handled if self.spec.kind is OptionKind.FLAG else self.value

    def __repr__(self) -> str:
        return f"OptionCell({self.name}={self.value!r}, handled={self.handled})"


class OptionReader:
    """Read-only accessor to an option's current value."""

    def __init__(self, cell: OptionCell):
        self.cell = cell

    def __call__(self, args: CallArgs) -> Any:
        if self.cell.spec.kind is OptionKind.FLAG:
            return self.cell.handled
        return self.cell.value


class Options:
    """
    Registry of option cells built from a declaration table.

    **Example Usage:**
        ```python
        options = Options()
        options.lookup("cost").on()
        options.lookup("basis").handled  # True
        options.lookup_flag("B") is options.lookup("basis")  # True
        ```
    """

    def __init__(self, table: tuple[OptionSpec, ...] | None = None):
        table = REPORT_OPTIONS if table is None else table
        self._cells: dict[str, OptionCell] = {}
        self._names: dict[str, OptionCell] = {}
        self._flags: dict[str, OptionCell] = {}
        for spec in table:
            cell = OptionCell(spec, self)
            self._cells[spec.name] = cell
            for name in spec.names:
                if name in self._names:
                    raise ValueError(f"Duplicate option name '{name}'")
                self._names[name] = cell
            if spec.flag is not None:
                if spec.flag in self._flags:
                    raise ValueError(f"Duplicate option flag '{spec.flag}'")
                self._flags[spec.flag] = cell

    def lookup(self, name: str) -> OptionCell | None:
        """Exact long-name lookup (canonical or alias); never a prefix match."""
        return self._names.get(name)

    def lookup_flag(self, flag: str) -> OptionCell | None:
        return self._flags.get(flag)

    def __getitem__(self, name: str) -> OptionCell:
        cell = self._names.get(name)
        if cell is None:
            raise KeyError(name)
        return cell

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[OptionCell]:
        return iter(self._cells.values())

    def handled(self, name: str) -> bool:
        return self[name].handled

    def value(self, name: str) -> Any:
        return self[name].value

    def names(self) -> list[str]:
        """Every accepted long name, canonical and alias, sorted."""
        return sorted(self._names)

    def flags(self) -> dict[str, str]:
        return {flag: cell.name for flag, cell in sorted(self._flags.items())}

    def handled_cells(self) -> list[OptionCell]:
        return [cell for cell in self._cells.values() if cell.handled]


# --- side effects ----------------------------------------------------------


def _set(name: str, value: Any) -> Callable[[Options, Any], None]:
    def hook(options: Options, _: Any) -> None:
        options[name].on(value, source="hook")

    return hook


def _select_format(source_option: str) -> Callable[[Options, Any], None]:
    def hook(options: Options, _: Any) -> None:
        options["format_"].on(options[source_option].value, source="hook")

    return hook


DEFAULT_DATE_FORMAT = "%Y/%m/%d"

BALANCE_FORMAT = "%20(display_total)  %(depth_spacer)%(partial_account)\n"
CSV_FORMAT = (
    "%(quoted(format_date(date))),%(quoted(code)),%(quoted(payee)),"
    "%(quoted(account)),%(quoted(display_amount)),"
    "%(quoted(cleared ? '*' : (pending ? '!' : ''))),%(quoted(join(note)))\n"
)
PRINT_FORMAT = (
    "%(format_date(date))%(cleared ? ' *' : (pending ? ' !' : ''))"
    "%(code ? ' (' + code + ')' : '') %(payee)\n"
    "    %-34(account)  %12(amount)\n"
    "%/    %-34(account)  %12(amount)\n"
)
PRICES_FORMAT = "%-10(format_date(date)) %-8(commodity) %12(price)\n"
PRICESDB_FORMAT = "P %(format_date(date)) %(commodity) %(price)\n"
PLOT_AMOUNT_FORMAT = "%(format_date(date, '%Y-%m-%d')) %(quantity(strip(display_amount)))\n"
PLOT_TOTAL_FORMAT = "%(format_date(date, '%Y-%m-%d')) %(quantity(strip(display_total)))\n"

F = OptionKind.FLAG
S = OptionKind.STRING
N = OptionKind.NUMBER
D = OptionKind.DATE

REPORT_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("abbrev_len_", kind=N, default=2, help="Shorten account segments to N characters"),
    OptionSpec("account_", kind=S, help="Report postings under this account expression"),
    OptionSpec("account_width_", kind=N, help="Width of the account column"),
    OptionSpec("actual", flag="L", help="Report only non-automated postings"),
    OptionSpec("add_budget", help="Show budgeted and unbudgeted postings with the budget"),
    OptionSpec("amount_", flag="t", kind=S, default="amount", help="Amount expression"),
    OptionSpec(
        "amount_data",
        flag="j",
        hook=_select_format("plot_amount_format_"),
        help="Print amounts in plottable form",
    ),
    OptionSpec("amount_width_", kind=N, help="Width of the amount column"),
    OptionSpec("anon", help="Anonymize payees and accounts"),
    OptionSpec("ansi", help="Color output"),
    OptionSpec("ansi_invert", help="Invert colors for negative amounts"),
    OptionSpec(
        "average",
        flag="A",
        hook=_set("display_total_", "total_expr / count"),
        help="Report running average",
    ),
    OptionSpec("balance_format_", kind=S, default=BALANCE_FORMAT, help="Balance report format"),
    OptionSpec("base", help="Report in base commodities"),
    OptionSpec("basis", aliases=("cost",), flag="B", help="Report cost basis"),
    OptionSpec("begin_", flag="b", kind=D, help="Report postings on or after this date"),
    OptionSpec("budget", help="Report only budgeted accounts, against their budget"),
    OptionSpec("by_payee", flag="P", help="Group postings by payee"),
    OptionSpec("cache_", kind=S, help="Cache file (not used)"),
    OptionSpec("cleared", flag="C", help="Report only cleared postings"),
    OptionSpec("code_as_account", help="Report postings under their entry code"),
    OptionSpec("code_as_payee", help="Report the entry code as payee"),
    OptionSpec("collapse", flag="n", help="Collapse each entry into one posting"),
    OptionSpec("collapse_if_zero", help="Collapse entries whose postings sum to zero"),
    OptionSpec("columns_", kind=N, default=80, help="Output width"),
    OptionSpec(
        "comm_as_account",
        aliases=("commodity_as_account",),
        help="Report postings under their commodity",
    ),
    OptionSpec(
        "comm_as_payee",
        aliases=("commodity_as_payee",),
        flag="x",
        help="Report the commodity as payee",
    ),
    OptionSpec("csv_format_", kind=S, default=CSV_FORMAT, help="CSV report format"),
    OptionSpec("current", flag="c", help="Ignore postings dated after today"),
    OptionSpec("daily", help="Group postings by day"),
    OptionSpec(
        "date_format_", flag="y", kind=S, default=DEFAULT_DATE_FORMAT, help="strftime date format"
    ),
    OptionSpec("date_width_", kind=N, help="Width of the date column"),
    OptionSpec(
        "deviation",
        flag="D",
        hook=_set("display_total_", "amount_expr - total_expr / count"),
        help="Report deviation from the running average",
    ),
    OptionSpec("display_", flag="d", kind=S, accumulate=True, help="Display predicate"),
    OptionSpec(
        "display_amount_", kind=S, default="amount_expr", help="Displayed amount expression"
    ),
    OptionSpec("display_total_", kind=S, default="total_expr", help="Displayed total expression"),
    OptionSpec("dow", help="Group postings by day of week"),
    OptionSpec("effective", help="Use effective posting dates"),
    OptionSpec("empty", flag="E", help="Show accounts with zero totals"),
    OptionSpec("end_", flag="e", kind=D, help="Report postings before this date"),
    OptionSpec("equity", help="Report opening balances"),
    OptionSpec("flat", help="Do not indent the account hierarchy"),
    OptionSpec("forecast_", kind=S, help="Forecast predicate (not used)"),
    OptionSpec("format_", flag="F", kind=S, help="Override the report format"),
    OptionSpec(
        "gain", flag="G", hook=_set("amount_", "market(amount) - cost"), help="Report gains"
    ),
    OptionSpec("head_", aliases=("first_",), kind=N, help="Show only the first N items"),
    OptionSpec("invert", hook=_set("amount_", "-amount"), help="Negate amounts"),
    OptionSpec("limit_", flag="l", kind=S, accumulate=True, help="Selection predicate"),
    OptionSpec("lot_dates", help="Keep lot dates"),
    OptionSpec("lot_prices", help="Keep lot prices"),
    OptionSpec("lot_tags", help="Keep lot tags"),
    OptionSpec("lots", help="Keep all lot details"),
    OptionSpec("market", flag="V", help="Report market values"),
    OptionSpec("monthly", flag="M", help="Group postings by month"),
    OptionSpec("no_total", help="Omit the grand total"),
    OptionSpec("only_", kind=S, help="Predicate applied after grouping"),
    OptionSpec("output_", flag="o", kind=S, help="Write the report to this file"),
    OptionSpec("pager_", kind=S, help="Pager (not used)"),
    OptionSpec("payee_as_account", help="Report postings under their payee"),
    OptionSpec("payee_width_", kind=N, help="Width of the payee column"),
    OptionSpec("pending", help="Report only pending postings"),
    OptionSpec("percentage", flag="%", help="Report totals as percentages"),
    OptionSpec("performance", flag="g", help="Report performance"),
    OptionSpec("period_", flag="p", kind=S, help="Period expression"),
    OptionSpec("period_sort_", kind=S, help="Sort within each period"),
    OptionSpec(
        "plot_amount_format_", kind=S, default=PLOT_AMOUNT_FORMAT, help="Plot format for amounts"
    ),
    OptionSpec(
        "plot_total_format_", kind=S, default=PLOT_TOTAL_FORMAT, help="Plot format for totals"
    ),
    OptionSpec("price", flag="I", hook=_set("amount_", "price"), help="Report per-unit prices"),
    OptionSpec("price_exp_", flag="Z", kind=N, help="Price expiration in minutes (not used)"),
    OptionSpec("prices_format_", kind=S, default=PRICES_FORMAT, help="Prices report format"),
    OptionSpec("pricesdb_format_", kind=S, default=PRICESDB_FORMAT, help="Price database format"),
    OptionSpec("print_format_", kind=S, default=PRINT_FORMAT, help="Print report format"),
    OptionSpec("quantity", flag="O", help="Report commodity quantities without valuation"),
    OptionSpec("quarterly", help="Group postings by quarter"),
    OptionSpec("real", flag="R", help="Report only real postings"),
    OptionSpec("register_format_", kind=S, help="Register report format"),
    OptionSpec("related", flag="r", help="Report the other postings of matching entries"),
    OptionSpec("related_all", help="Report every posting of matching entries"),
    OptionSpec("revalued", help="Report revaluation postings (not used)"),
    OptionSpec("revalued_only", help="Report only revaluation postings (not used)"),
    OptionSpec("set_account_", kind=S, help="Expression giving the reported account"),
    OptionSpec("set_payee_", kind=S, help="Expression giving the reported payee"),
    OptionSpec("set_price_", kind=S, help="Price expression (not used)"),
    OptionSpec("sort_", flag="S", kind=S, help="Sort postings by this expression"),
    OptionSpec("sort_all_", kind=S, help="Sort all postings by this expression"),
    OptionSpec("sort_entries_", kind=S, help="Sort postings within each entry"),
    OptionSpec("subtotal", flag="s", help="Collapse postings into one per account"),
    OptionSpec("tail_", aliases=("last_",), kind=N, help="Show only the last N items"),
    OptionSpec("total_", flag="T", kind=S, default="total", help="Total expression"),
    OptionSpec(
        "total_data",
        flag="J",
        hook=_select_format("plot_total_format_"),
        help="Print totals in plottable form",
    ),
    OptionSpec("total_width_", kind=N, help="Width of the total column"),
    OptionSpec("totals", help="Include totals (not used)"),
    OptionSpec(
        "truncate_",
        kind=S,
        default="trailing",
        choices=("leading", "middle", "trailing"),
        help="Where to elide truncated text",
    ),
    OptionSpec("unbudgeted", help="Report only unbudgeted accounts"),
    OptionSpec("uncleared", flag="U", help="Report only uncleared postings"),
    OptionSpec("weekly", flag="W", help="Group postings by week"),
    OptionSpec("wide", flag="w", hook=_set("columns_", 132), help="Use 132 columns"),
    OptionSpec("yearly", flag="Y", help="Group postings by year"),
)
