"""Utilities for loading journals from YAML/JSON sources."""

from __future__ import annotations

import json
from copy import deepcopy
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from .amount import Amount, Annotation
from .errors import AccountTreeError, JournalLoadError, UnbalancedEntryError, ValueTypeError
from .journal import Entry, Journal, PeriodicEntry, Posting, PostingState

__all__ = ["load_journal", "read_prices"]

_STATES = {
    "cleared": PostingState.CLEARED,
    "*": PostingState.CLEARED,
    "pending": PostingState.PENDING,
    "!": PostingState.PENDING,
    "uncleared": PostingState.UNCLEARED,
}


def load_journal(
    source: str | Path | dict[str, Any],
    *,
    format: str | None = None,
    journal: Journal | None = None,
) -> Journal:
    """
    Build a journal from a YAML/JSON file or an already parsed mapping.

    The mapping has three optional sections: ``entries`` (dated entries with
    postings), ``prices`` (dated commodity quotes) and ``periodic`` (budget
    templates). Each entry may leave one posting's amount out; it receives
    the negated balance of the others.

    Args:
        source: Path to a ``.yaml``/``.yml``/``.json`` file, or a mapping
        format: Force the file format instead of using the suffix
        journal: Journal to add to (a new one when omitted)

    Returns:
        The populated journal

    Raises:
        FileNotFoundError: If ``source`` is a path that does not exist
        JournalLoadError: If the content is malformed or an entry does not balance

    **Example Usage:**
        ```python
        journal = load_journal({
            "entries": [
                {
                    "date": "2024-01-05",
                    "payee": "Grocer",
                    "postings": [
                        {"account": "Expenses:Food", "amount": "$10"},
                        {"account": "Assets:Cash"},
                    ],
                }
            ]
        })
        ```
    """
    mapping, label = _read_source(source, format=format)
    journal = journal if journal is not None else Journal()

    for idx, raw in enumerate(_ensure_list(mapping.get("prices"), f"{label}::prices")):
        ctx = f"{label}::prices[{idx}]"
        _add_price(journal, _ensure_dict(raw, ctx), ctx)

    for idx, raw in enumerate(_ensure_list(mapping.get("periodic"), f"{label}::periodic")):
        ctx = f"{label}::periodic[{idx}]"
        data = _ensure_dict(raw, ctx)
        period = _coerce_str(data.get("period"), f"{ctx}.period")
        periodic = PeriodicEntry(period=period)
        postings = _ensure_list(data.get("postings"), f"{ctx}.postings")
        for pidx, raw_posting in enumerate(postings):
            pctx = f"{ctx}.postings[{pidx}]"
            periodic.postings.append(
                _build_posting(journal, _ensure_dict(raw_posting, pctx), pctx)
            )
        journal.add_periodic_entry(periodic)

    for idx, raw in enumerate(_ensure_list(mapping.get("entries"), f"{label}::entries")):
        ctx = f"{label}::entries[{idx}]"
        entry = _build_entry(journal, _ensure_dict(raw, ctx), ctx)
        try:
            journal.add_entry(entry)
        except UnbalancedEntryError as exc:
            raise JournalLoadError(f"{ctx}: {exc}") from exc

    if label != "<mapping>":
        journal.sources.append(label)
    return journal


def read_prices(source: str | Path, journal: Journal) -> Journal:
    """Add the ``prices`` section of a price database file to ``journal``."""
    mapping, label = _read_source(source, format=None)
    for idx, raw in enumerate(_ensure_list(mapping.get("prices"), f"{label}::prices")):
        ctx = f"{label}::prices[{idx}]"
        _add_price(journal, _ensure_dict(raw, ctx), ctx)
    return journal


def _read_source(
    source: str | Path | dict[str, Any], *, format: str | None
) -> tuple[dict[str, Any], str]:
    if isinstance(source, dict):
        return deepcopy(source), "<mapping>"

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(path)

    fmt = (format or path.suffix.lstrip(".")).lower()
    text = path.read_text(encoding="utf-8")
    try:
        if fmt in {"yaml", "yml", ""}:
            data = yaml.safe_load(text)
        elif fmt == "json":
            data = json.loads(text)
        else:
            raise JournalLoadError(f"Unsupported journal format '{fmt}' for {path}")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise JournalLoadError(f"Cannot parse {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise JournalLoadError(f"Journal root must be a mapping (source={path})")
    return data, str(path)


def _add_price(journal: Journal, data: dict[str, Any], ctx: str) -> None:
    moment = _coerce_date(data.get("date"), f"{ctx}.date")
    if moment is None:
        raise JournalLoadError(f"{ctx}: 'date' is required")
    symbol = _coerce_str(data.get("commodity"), f"{ctx}.commodity")
    price = _coerce_amount(journal, data.get("price"), f"{ctx}.price")
    if price is None:
        raise JournalLoadError(f"{ctx}: 'price' is required")
    journal.add_price(symbol, moment, price)


def _build_entry(journal: Journal, data: dict[str, Any], ctx: str) -> Entry:
    moment = _coerce_date(data.get("date"), f"{ctx}.date")
    if moment is None:
        raise JournalLoadError(f"{ctx}: 'date' is required")
    payee = data.get("payee", "")
    if not isinstance(payee, str):
        raise JournalLoadError(f"{ctx}.payee must be a string")
    code = data.get("code")
    entry = Entry(
        date=moment,
        payee=payee,
        code=str(code) if code is not None else None,
        note=_coerce_optional_str(data.get("note"), f"{ctx}.note"),
        state=_coerce_state(data.get("state"), f"{ctx}.state") or PostingState.UNCLEARED,
    )
    postings = _ensure_list(data.get("postings"), f"{ctx}.postings")
    if not postings:
        raise JournalLoadError(f"{ctx}: an entry needs at least one posting")
    for idx, raw in enumerate(postings):
        pctx = f"{ctx}.postings[{idx}]"
        entry.add_posting(_build_posting(journal, _ensure_dict(raw, pctx), pctx))
    return entry


def _build_posting(journal: Journal, data: dict[str, Any], ctx: str) -> Posting:
    account = _coerce_str(data.get("account"), f"{ctx}.account")
    amount = _coerce_amount(journal, data.get("amount"), f"{ctx}.amount")
    lot = data.get("lot")
    if lot is not None:
        if amount is None:
            raise JournalLoadError(f"{ctx}: a lot needs an amount")
        lot = _ensure_dict(lot, f"{ctx}.lot")
        amount = Amount(
            amount.quantity,
            amount.commodity,
            Annotation(
                price=_coerce_amount(journal, lot.get("price"), f"{ctx}.lot.price"),
                date=_coerce_date(lot.get("date"), f"{ctx}.lot.date"),
                tag=_coerce_optional_str(lot.get("tag"), f"{ctx}.lot.tag"),
            ),
        )
    virtual = data.get("virtual", False)
    if not isinstance(virtual, bool):
        raise JournalLoadError(f"{ctx}.virtual must be boolean when provided")
    try:
        target = journal.find_account(account)
    except AccountTreeError as exc:
        raise JournalLoadError(f"{ctx}.account: {exc}") from exc
    return Posting(
        account=target,
        amount=amount,
        state=_coerce_state(data.get("state"), f"{ctx}.state"),
        virtual=virtual,
        date=_coerce_date(data.get("date"), f"{ctx}.date"),
        cost=_coerce_amount(journal, data.get("cost"), f"{ctx}.cost"),
        note=_coerce_optional_str(data.get("note"), f"{ctx}.note"),
    )


def _coerce_amount(journal: Journal, value: Any, ctx: str) -> Amount | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise JournalLoadError(f"{ctx}: expected an amount")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise JournalLoadError(f"{ctx}: expected an amount string")
    try:
        return journal.parse_amount(value)
    except ValueTypeError as exc:
        raise JournalLoadError(f"{ctx}: {exc}") from exc


def _coerce_state(value: Any, ctx: str) -> PostingState | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return PostingState.CLEARED if value else PostingState.UNCLEARED
    state = _STATES.get(str(value).lower())
    if state is None:
        raise JournalLoadError(f"{ctx}: unknown state '{value}'")
    return state


def _coerce_date(value: Any, ctx: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.replace("/", "-"))
        except ValueError as exc:
            raise JournalLoadError(f"{ctx}: invalid ISO date '{value}'") from exc
    raise JournalLoadError(f"{ctx}: expected ISO date string")


def _coerce_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise JournalLoadError(f"{ctx}: expected non-empty string")
    return value


def _coerce_optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    return _coerce_str(value, ctx)


def _ensure_dict(value: Any, ctx: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise JournalLoadError(f"{ctx}: expected a mapping")
    return value


def _ensure_list(value: Any, ctx: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise JournalLoadError(f"{ctx}: expected a list")
    return list(value)
