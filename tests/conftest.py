"""
Shared journal fixtures.
"""

from __future__ import annotations

import io
from datetime import date

import pytest
import yaml
from ledgerlab.core.journal import Journal
from ledgerlab.core.loader import load_journal
from ledgerlab.core.report import Report
from ledgerlab.core.session import Session

TODAY = date(2024, 3, 15)

# Two food postings and the salary posting balancing them
GROCERIES = {
    "entries": [
        {
            "date": "2024-01-05",
            "payee": "Grocer",
            "postings": [
                {"account": "Expenses:Food", "amount": "$10"},
                {"account": "Expenses:Food", "amount": "$5"},
                {"account": "Income:Salary", "amount": "$-15"},
            ],
        }
    ]
}

HOUSEHOLD = {
    "prices": [
        {"date": "2024-01-01", "commodity": "AAPL", "price": "$100"},
        {"date": "2024-02-01", "commodity": "AAPL", "price": "$120"},
    ],
    "periodic": [
        {
            "period": "monthly",
            "postings": [
                {"account": "Expenses:Food", "amount": "$300"},
                {"account": "Assets:Checking", "amount": "$-300"},
            ],
        }
    ],
    "entries": [
        {
            "date": "2024-01-01",
            "payee": "Employer",
            "code": "101",
            "state": "cleared",
            "postings": [
                {"account": "Assets:Checking", "amount": "$1000"},
                {"account": "Income:Salary"},
            ],
        },
        {
            "date": "2024-01-05",
            "payee": "Grocer",
            "postings": [
                {"account": "Expenses:Food:Groceries", "amount": "$40"},
                {"account": "Assets:Checking"},
            ],
        },
        {
            "date": "2024-01-20",
            "payee": "Broker",
            "state": "pending",
            "postings": [
                {"account": "Assets:Brokerage", "amount": "2 AAPL", "cost": "$200"},
                {"account": "Assets:Checking", "amount": "$-200"},
            ],
        },
        {
            "date": "2024-02-03",
            "payee": "Grocer",
            "note": "weekly shop",
            "postings": [
                {"account": "Expenses:Food:Groceries", "amount": "$60"},
                {"account": "Assets:Checking"},
            ],
        },
        {
            "date": "2024-02-10",
            "payee": "Cafe",
            "postings": [
                {"account": "Expenses:Food:Dining", "amount": "$25"},
                {"account": "Assets:Checking"},
            ],
        },
    ],
}


@pytest.fixture
def groceries() -> Journal:
    return load_journal(GROCERIES)


@pytest.fixture
def household() -> Journal:
    return load_journal(HOUSEHOLD)


def make_report(journal: Journal) -> Report:
    """Report over ``journal`` with a fixed today and captured output."""
    return Report(Session(journal, today=TODAY), output_stream=io.StringIO())


@pytest.fixture
def report(groceries: Journal) -> Report:
    return make_report(groceries)


@pytest.fixture
def household_report(household: Journal) -> Report:
    return make_report(household)


@pytest.fixture(scope="session")
def report_for():
    """Factory building a report over any journal."""
    return make_report


@pytest.fixture
def groceries_file(tmp_path):
    """The groceries journal written to a YAML file."""
    path = tmp_path / "journal.yaml"
    path.write_text(yaml.safe_dump(GROCERIES))
    return path
