"""
Smoke tests to verify basic imports and functionality.
"""

import pytest


def test_import_ledgerlab():
    """Test that we can import the main package."""
    import ledgerlab

    assert hasattr(ledgerlab, "__version__")
    assert ledgerlab.__version__ == "0.1.0"


def test_public_api():
    from ledgerlab import (
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

    assert issubclass(Reporter, object)
    assert callable(load_journal)
    assert all(
        obj is not None
        for obj in (Account, AccountTree, Amount, Balance, Entry, Expr, Journal, Options)
    )
    assert issubclass(EvaluationError, Exception)
    assert Posting and Report and Session


def test_core_modules_import():
    from ledgerlab.core import (  # noqa: F401
        aggregator,
        chain,
        filters,
        format,
        functions,
        output,
        periods,
        precmd,
        prices,
        query,
        resolver,
        walkers,
    )


def test_end_to_end_balance():
    """Load a journal mapping and run a balance report."""
    import io

    from ledgerlab import Report, Session, load_journal
    from ledgerlab.core.scope import CallArgs

    journal = load_journal(
        {
            "entries": [
                {
                    "date": "2024-01-01",
                    "payee": "Shop",
                    "postings": [
                        {"account": "Expenses:Books", "amount": "$12"},
                        {"account": "Assets:Cash"},
                    ],
                }
            ]
        }
    )
    out = io.StringIO()
    report = Report(Session(journal), output_stream=out)
    assert report.lookup("cmd_balance")(CallArgs(["Books"])) is True
    assert out.getvalue().endswith("  Expenses:Books\n")


def test_unknown_command_is_none():
    from ledgerlab import Report, Session

    assert Report(Session()).lookup("cmd_nonsense") is None


@pytest.mark.parametrize("name", ["bal", "reg", "print", "csv", "emacs", "equity", "stats"])
def test_commands_resolve(name):
    from ledgerlab import Report, Reporter, Session

    assert isinstance(Report(Session()).lookup(f"cmd_{name}"), Reporter)
