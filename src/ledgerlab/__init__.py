"""
LedgerLab - Reporting Core for Double-Entry Journals

LedgerLab turns a journal of dated, balanced entries into reports: registers,
balances, price lists, budgets and period summaries. Every report is a chain
of small filter stages assembled from option settings, ending in a handler
that renders each surviving posting or account through a format string.

Key Features:
- **Option-driven**: One declarative option table drives the CLI, the
  expression language and programmatic use alike
- **Composable chains**: Selection, valuation, sorting, grouping and
  truncation stages are stacked per report, in a fixed order
- **Expression language**: Predicates, sort keys and formats share one small
  language with built-in functions (``market``, ``truncate``, ``quoted``...)
- **Account tree**: Index-based arena with post-order totals
- **Deterministic**: The same journal and options always give the same output

Quick Start:
    ```python
    from ledgerlab import Report, Session, load_journal
    from ledgerlab.core.scope import CallArgs

    journal = load_journal("journal.yaml")
    report = Report(Session(journal))
    report.options["monthly"].on()
    report.lookup("cmd_register")(CallArgs(["Expenses"]))
    ```

Commands:
    balance (b, bal), register (r, reg), print (p), csv, emacs, equity,
    prices, pricesdb, stats (stat), reload

Diagnostic precommands:
    args, eval, format, parse, period, template
"""

# Version information
__version__ = "0.1.0"
__author__ = "LedgerLab Team"
__description__ = "Reporting core for double-entry journals"

from .core import (
    Account,
    AccountTree,
    Amount,
    Balance,
    Entry,
    EvaluationError,
    Expr,
    Journal,
    Options,
    Posting,
    Report,
    Reporter,
    Session,
    load_journal,
)

__all__ = [
    # Journal model
    "Account",
    "AccountTree",
    "Amount",
    "Balance",
    "Entry",
    "Journal",
    "Posting",
    "load_journal",
    # Reporting
    "Expr",
    "Options",
    "Report",
    "Reporter",
    "Session",
    # Errors
    "EvaluationError",
]
