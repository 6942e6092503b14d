"""
Identifier resolution for report expressions.

A name is classified against registration tables built once at import time,
first match wins:

1. single-character legacy flags (``B``, ``V``, ...)
2. built-in functions (``market``, ``truncate``, ...)
3. ``cmd_`` commands (``cmd_balance``, ``cmd_reg``, ...)
4. ``precmd_`` diagnostic precommands
5. ``opt_`` long options, read/write
6. bare long-option names, read-only

The session, consulted before all of these, is the report's concern. The
classification is a small closed set of dataclasses; the report turns each
into something callable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from .functions import BUILTINS, Builtin
from .options import OptionCell, Options
from .output import (
    FormatAccounts,
    FormatEmacs,
    FormatEquity,
    FormatPosts,
    FormatPrices,
    GatherStatistics,
    Handler,
    PrintEntries,
)
from .precmd import PRECOMMANDS

if TYPE_CHECKING:
    from .report import Report

CMD_PREFIX = "cmd_"
PRECMD_PREFIX = "precmd_"
OPT_PREFIX = "opt_"


class ReportMode:
    POSTS = "posts"
    ACCOUNTS = "accounts"
    COMMODITIES = "commodities"
    SESSION = "session"


@dataclass(frozen=True)
class CommandSpec:
    """
    Registration of one report command.

    Attributes:
        mode: Which report drives the handler (see ``ReportMode``)
        handler: Builds a fresh terminal handler for one run; None for
            session commands
    """

    mode: str
    handler: Callable[[Report], Handler] | None = None


def _formatted(handler_class: type, format_option: str) -> Callable[[Report], Handler]:
    def build(report: Report) -> Handler:
        return handler_class(report, report.report_format(format_option))

    return build


_BALANCE = CommandSpec(ReportMode.ACCOUNTS, _formatted(FormatAccounts, "balance_format_"))
_PRINT = CommandSpec(ReportMode.POSTS, _formatted(PrintEntries, "print_format_"))
_REGISTER = CommandSpec(ReportMode.POSTS, _formatted(FormatPosts, "register_format_"))
_STATS = CommandSpec(ReportMode.POSTS, GatherStatistics)

COMMANDS: dict[str, CommandSpec] = {
    "b": _BALANCE,
    "bal": _BALANCE,
    "balance": _BALANCE,
    "csv": CommandSpec(ReportMode.POSTS, _formatted(FormatPosts, "csv_format_")),
    "emacs": CommandSpec(ReportMode.POSTS, FormatEmacs),
    "equity": CommandSpec(ReportMode.ACCOUNTS, _formatted(FormatEquity, "print_format_")),
    "p": _PRINT,
    "print": _PRINT,
    "prices": CommandSpec(ReportMode.COMMODITIES, _formatted(FormatPrices, "prices_format_")),
    "pricesdb": CommandSpec(
        ReportMode.COMMODITIES, _formatted(FormatPrices, "pricesdb_format_")
    ),
    "r": _REGISTER,
    "reg": _REGISTER,
    "register": _REGISTER,
    "reload": CommandSpec(ReportMode.SESSION),
    "stat": _STATS,
    "stats": _STATS,
}


@dataclass(frozen=True)
class Function:
    name: str
    target: Builtin


@dataclass(frozen=True)
class Command:
    name: str
    spec: CommandSpec


@dataclass(frozen=True)
class PreCommand:
    name: str
    target: Callable[[Report, Any], bool]


@dataclass(frozen=True)
class Option:
    """An option cell, writable when reached through ``opt_``."""

    name: str
    cell: OptionCell
    writable: bool = False


@dataclass(frozen=True)
class Unresolved:
    name: str


Resolution = Union[Function, Command, PreCommand, Option, Unresolved]


class Resolver:
    """
    Classifies names against the registration tables of one report.

    **Example Usage:**
        ```python
        resolver = Resolver(Options())
        resolver.classify("cmd_bal")     # Command('bal', ...)
        resolver.classify("V")           # Option('market', ..., writable=False)
        resolver.classify("opt_head_")   # Option('head_', ..., writable=True)
        resolver.classify("nonsense")    # Unresolved('nonsense')
        ```
    """

    def __init__(
        self,
        options: Options,
        functions: dict[str, Builtin] | None = None,
        commands: dict[str, CommandSpec] | None = None,
        precommands: dict[str, Callable[[Report, Any], bool]] | None = None,
    ):
        self.options = options
        self.functions = BUILTINS if functions is None else functions
        self.commands = COMMANDS if commands is None else commands
        self.precommands = PRECOMMANDS if precommands is None else precommands

    def classify(self, name: str) -> Resolution:
        if not name:
            return Unresolved(name)

        if len(name) == 1:
            cell = self.options.lookup_flag(name)
            if cell is not None:
                return Option(cell.name, cell)

        target = self.functions.get(name)
        if target is not None:
            return Function(name, target)

        if name.startswith(CMD_PREFIX):
            spec = self.commands.get(name[len(CMD_PREFIX) :])
            if spec is not None:
                return Command(name[len(CMD_PREFIX) :], spec)

        if name.startswith(PRECMD_PREFIX):
            precmd = self.precommands.get(name[len(PRECMD_PREFIX) :])
            if precmd is not None:
                return PreCommand(name[len(PRECMD_PREFIX) :], precmd)

        if name.startswith(OPT_PREFIX):
            cell = self.options.lookup(name[len(OPT_PREFIX) :])
            if cell is not None:
                return Option(cell.name, cell, writable=True)

        cell = self.options.lookup(name)
        if cell is not None:
            return Option(cell.name, cell)

        return Unresolved(name)
