"""
Tests for the session: journal loading and session-level names.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest
import yaml
from ledgerlab.core.errors import AccountTreeError, JournalLoadError
from ledgerlab.core.expr import Expr
from ledgerlab.core.options import OptionCell, OptionReader
from ledgerlab.core.report import Report
from ledgerlab.core.scope import CallArgs
from ledgerlab.core.session import JOURNAL_ENV_VAR, PRICE_DB_ENV_VAR, Session


@pytest.fixture
def price_file(tmp_path):
    path = tmp_path / "prices.yaml"
    quote = {"date": "2024-01-01", "commodity": "EUR", "price": "$1.10"}
    path.write_text(yaml.safe_dump({"prices": [quote]}))
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.delenv(JOURNAL_ENV_VAR, raising=False)
    monkeypatch.delenv(PRICE_DB_ENV_VAR, raising=False)


class TestLoading:
    def test_from_file(self, groceries_file, price_file):
        session = Session.from_file(groceries_file, price_db=price_file)
        assert len(session.journal) == 1
        assert session.journal.sources == [str(groceries_file)]
        assert "EUR" in session.journal.commodities
        assert session.options["file_"].source == "from_file"

    def test_environment_variables(self, monkeypatch, groceries_file, price_file):
        monkeypatch.setenv(JOURNAL_ENV_VAR, str(groceries_file))
        monkeypatch.setenv(PRICE_DB_ENV_VAR, str(price_file))
        session = Session()
        session.load()
        assert len(session.journal) == 1
        assert "EUR" in session.journal.commodities

    def test_option_wins_over_environment(self, monkeypatch, tmp_path, groceries_file):
        monkeypatch.setenv(JOURNAL_ENV_VAR, str(tmp_path / "elsewhere.yaml"))
        session = Session()
        session.options["file_"].on(str(groceries_file))
        assert session.journal_path() == str(groceries_file)

    def test_no_journal_configured(self):
        with pytest.raises(JournalLoadError, match=JOURNAL_ENV_VAR):
            Session().load()

    def test_reload_reads_the_file_again(self, groceries_file):
        session = Session.from_file(groceries_file)
        data = yaml.safe_load(groceries_file.read_text())
        data["entries"] *= 2
        groceries_file.write_text(yaml.safe_dump(data))
        report = Report(session)
        assert report.lookup("cmd_reload")(CallArgs()) is True
        assert len(session.journal) == 2

    def test_strict_validates_tree(self, groceries_file, monkeypatch):
        session = Session()
        session.options["file_"].on(str(groceries_file))
        session.options["strict"].on()
        session.load()

        def broken(self):
            raise AccountTreeError("Account tree has unreachable nodes")

        monkeypatch.setattr("ledgerlab.core.accounts.AccountTree.validate", broken)
        with pytest.raises(AccountTreeError):
            session.load()


class TestLookup:
    def test_functions(self):
        session = Session(today=date(2024, 3, 15))
        assert session.lookup("today")(CallArgs()) == date(2024, 3, 15)
        assert session.lookup("now")(CallArgs()) == datetime(2024, 3, 15)

    def test_real_today_by_default(self):
        assert Session().today() == date.today()

    def test_options(self):
        session = Session()
        assert isinstance(session.lookup("f"), OptionReader)
        assert isinstance(session.lookup("file_"), OptionReader)
        assert isinstance(session.lookup("opt_price_db_"), OptionCell)
        assert session.lookup("limit_") is None
        assert session.lookup("B") is None

    def test_visible_from_report_expressions(self, report, groceries_file):
        report.session.options["file_"].on(str(groceries_file))
        assert Expr("file_").calc(report) == str(groceries_file)
        assert Expr("f").calc(report) == str(groceries_file)
        assert Expr("strict").calc(report) is False
