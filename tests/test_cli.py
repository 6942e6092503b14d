"""
Tests for the ledgerlab command line.
"""

from __future__ import annotations

import io

import pytest
from ledgerlab import __version__
from ledgerlab.cli import build_parser, run
from ledgerlab.core.session import JOURNAL_ENV_VAR, PRICE_DB_ENV_VAR


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    monkeypatch.delenv(JOURNAL_ENV_VAR, raising=False)
    monkeypatch.delenv(PRICE_DB_ENV_VAR, raising=False)


def invoke(*argv):
    """Run the command line and return (status, output)."""
    out = io.StringIO()
    status = run(list(argv), stdout=out)
    return status, out.getvalue()


class TestReports:
    def test_balance(self, groceries_file):
        status, output = invoke("-f", str(groceries_file), "balance")
        assert status == 0
        assert output.startswith("$15".rjust(20) + "  Expenses:Food\n")
        assert output.endswith("-" * 20 + "\n" + "$0".rjust(20) + "\n")

    def test_query_after_command(self, groceries_file):
        status, output = invoke(
            "-f", str(groceries_file), "reg", "Food", "--format", "%(display_total)\\n"
        )
        assert status == 0
        assert output == "$10\n$15\n"

    def test_limit_options_accumulate(self, groceries_file):
        status, output = invoke(
            "-f", str(groceries_file),
            "-l", "account =~ /Food/",
            "--limit", "amount > 5",
            "-F", "%(amount)\\n",
            "register",
        )
        assert status == 0
        assert output == "$10\n"

    def test_head(self, groceries_file):
        _, output = invoke("-f", str(groceries_file), "--head", "1", "-F", "%(amount)\\n", "reg")
        assert output == "$10\n"

    def test_journal_from_environment(self, monkeypatch, groceries_file):
        monkeypatch.setenv(JOURNAL_ENV_VAR, str(groceries_file))
        status, output = invoke("--flat", "--no-total", "bal", "Salary")
        assert status == 0
        assert output == "-$15".rjust(20) + "  Income:Salary\n"

    def test_output_file(self, tmp_path, groceries_file):
        target = tmp_path / "report.txt"
        status, output = invoke("-f", str(groceries_file), "-o", str(target), "print")
        assert status == 0
        assert output == ""
        assert target.read_text().startswith("2024/01/05 Grocer\n")


class TestPrecommands:
    def test_eval_without_journal(self):
        assert invoke("eval", "2 + 3") == (0, "5\n")

    def test_args_with_journal(self, groceries_file):
        status, output = invoke("-f", str(groceries_file), "args", "Food")
        assert status == 0
        assert output.endswith("account =~ /Food/\n")


class TestErrors:
    def test_unknown_command(self, groceries_file, capsys):
        assert invoke("-f", str(groceries_file), "frobnicate") == (1, "")
        assert "Error: Unknown command 'frobnicate'" in capsys.readouterr().err

    def test_no_journal(self, capsys):
        assert invoke("balance")[0] == 1
        assert "No journal file given" in capsys.readouterr().err

    def test_missing_journal(self, tmp_path, capsys):
        assert invoke("-f", str(tmp_path / "missing.yaml"), "balance")[0] == 1
        assert capsys.readouterr().err.startswith("Error: ")

    def test_bad_option_value(self, groceries_file, capsys):
        assert invoke("-f", str(groceries_file), "--head", "five", "reg")[0] == 1
        assert "head_" in capsys.readouterr().err

    def test_bad_expression(self, groceries_file, capsys):
        assert invoke("-f", str(groceries_file), "-l", "nonsense", "reg")[0] == 1
        err = capsys.readouterr().err
        assert "While running report command 'reg'" in err
        assert "Unknown identifier 'nonsense'" in err


def test_parser_long_names():
    parser = build_parser()
    args = parser.parse_intermixed_args(["--price-db", "p.yaml", "--basis", "bal", "Food"])
    assert args.command == "bal"
    assert args.query == ["Food"]
    assert args.settings == [("price_db_", "p.yaml", "--price-db"), ("basis", None, "--basis")]


def test_version(capsys):
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["--version"])
    assert info.value.code == 0
    assert capsys.readouterr().out == f"LedgerLab {__version__}\n"
