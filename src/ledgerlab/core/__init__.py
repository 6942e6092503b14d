"""
Core module for LedgerLab.

This module contains the journal model, the expression language and the
report machinery built on top of them.
"""

from .accounts import Account, AccountTree
from .amount import Amount, Balance, Commodity, CommodityPool
from .chain import Chain, build_account_chain, build_posting_chain
from .errors import (
    AccountTreeError,
    CommodityError,
    EvaluationError,
    ExpressionError,
    JournalLoadError,
    OptionValueError,
    UnbalancedEntryError,
    UndefinedIdentifierError,
    ValueTypeError,
)
from .expr import Expr
from .journal import Entry, Journal, PeriodicEntry, Posting, PostingState
from .loader import load_journal
from .options import Options, OptionSpec
from .report import Report, Reporter
from .resolver import Resolver
from .session import Session

__all__ = [
    # Errors
    "AccountTreeError",
    "CommodityError",
    "EvaluationError",
    "ExpressionError",
    "JournalLoadError",
    "OptionValueError",
    "UnbalancedEntryError",
    "UndefinedIdentifierError",
    "ValueTypeError",
    # Journal model
    "Account",
    "AccountTree",
    "Amount",
    "Balance",
    "Commodity",
    "CommodityPool",
    "Entry",
    "Journal",
    "PeriodicEntry",
    "Posting",
    "PostingState",
    "load_journal",
    # Reporting
    "Chain",
    "Expr",
    "Options",
    "OptionSpec",
    "Report",
    "Reporter",
    "Resolver",
    "Session",
    "build_account_chain",
    "build_posting_chain",
]
