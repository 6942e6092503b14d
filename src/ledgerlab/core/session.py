"""
Session: the journal being reported on and the names resolved above reports.

A report consults its session before its own tables, so session options
(``file_``/``f``, ``price_db_``, ``strict``) and the session functions
(``now``, ``today``) are visible from every expression.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any

from .errors import JournalLoadError
from .journal import Journal
from .loader import load_journal, read_prices
from .options import OptionKind, OptionReader, Options, OptionSpec
from .scope import CallArgs, Scope

logger = logging.getLogger(__name__)

JOURNAL_ENV_VAR = "LEDGER_FILE"
PRICE_DB_ENV_VAR = "LEDGER_PRICE_DB"

SESSION_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("file_", flag="f", kind=OptionKind.STRING, help="Journal file to read"),
    OptionSpec("price_db_", kind=OptionKind.STRING, help="Price database file to read"),
    OptionSpec("strict", help="Check the account tree after loading"),
)


class Session(Scope):
    """
    Owns the journal and resolves session-level names.

    Attributes:
        journal: Journal reports run against
        options: Session option cells
        fixed_today: Date used as "today" (the real date when None)

    **Example Usage:**
        ```python
        session = Session.from_file("journal.yaml")
        report = Report(session)
        report.lookup("cmd_balance")(CallArgs(["Expenses"]))
        ```
    """

    def __init__(self, journal: Journal | None = None, today: date | None = None):
        super().__init__(None)
        self.journal = journal if journal is not None else Journal()
        self.options = Options(SESSION_OPTIONS)
        self.fixed_today = today
        self._functions = {"now": self.fn_now, "today": self.fn_today}

    @classmethod
    def from_file(cls, path: str | Path, price_db: str | Path | None = None) -> Session:
        session = cls()
        session.options["file_"].on(str(path), source="from_file")
        if price_db is not None:
            session.options["price_db_"].on(str(price_db), source="from_file")
        session.load()
        return session

    def today(self) -> date:
        return self.fixed_today or date.today()

    def fn_now(self, args: CallArgs) -> datetime:
        if self.fixed_today is not None:
            return datetime.combine(self.fixed_today, datetime.min.time())
        return datetime.now()

    def fn_today(self, args: CallArgs) -> date:
        return self.today()

    def journal_path(self) -> str | None:
        return self.options.value("file_") or os.environ.get(JOURNAL_ENV_VAR)

    def load(self) -> Journal:
        """
        Read the journal (and price database) named by the session options.

        Raises:
            JournalLoadError: If no journal file is configured or it is malformed
        """
        path = self.journal_path()
        if not path:
            raise JournalLoadError(
                f"No journal file given (use -f/--file or set {JOURNAL_ENV_VAR})"
            )
        journal = load_journal(path)
        price_db = self.options.value("price_db_") or os.environ.get(PRICE_DB_ENV_VAR)
        if price_db:
            read_prices(price_db, journal)
        if self.options.handled("strict"):
            journal.accounts.validate()
        self.journal = journal
        logger.debug("Loaded %s: %r", path, journal)
        return journal

    def reload(self, args: CallArgs | None = None) -> bool:
        """Discard the journal and read it again from its file."""
        self.load()
        return True

    def lookup(self, name: str) -> Any | None:
        function = self._functions.get(name)
        if function is not None:
            return function
        if len(name) == 1:
            cell = self.options.lookup_flag(name)
            if cell is not None:
                return OptionReader(cell)
        if name.startswith("opt_"):
            cell = self.options.lookup(name[4:])
            if cell is not None:
                return cell
        cell = self.options.lookup(name)
        if cell is not None:
            return OptionReader(cell)
        return None
