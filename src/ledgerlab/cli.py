"""
Command-line interface for LedgerLab.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import IO

from ledgerlab import __version__
from ledgerlab.core.errors import EvaluationError, JournalLoadError
from ledgerlab.core.options import REPORT_OPTIONS, OptionSpec
from ledgerlab.core.precmd import PRECOMMANDS
from ledgerlab.core.report import Report
from ledgerlab.core.resolver import COMMANDS
from ledgerlab.core.scope import CallArgs
from ledgerlab.core.session import SESSION_OPTIONS, Session


def _long_option(name: str) -> str:
    return "--" + name.rstrip("_").replace("_", "-")


class _SetOption(argparse.Action):
    """Record an option setting; settings are applied in command-line order."""

    def __init__(self, option_strings, dest, spec: OptionSpec, **kwargs):
        self.spec = spec
        super().__init__(
            option_strings, dest, nargs=1 if spec.takes_argument else 0, **kwargs
        )

    def __call__(self, parser, namespace, values, option_string=None):
        settings = list(getattr(namespace, "settings", None) or [])
        value = values[0] if values else None
        settings.append((self.spec.name, value, option_string))
        namespace.settings = settings


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser from the session and report option tables."""
    commands = sorted(COMMANDS) + sorted(PRECOMMANDS)
    parser = argparse.ArgumentParser(
        prog="ledgerlab",
        description="Report on a double-entry journal.",
        allow_abbrev=False,
    )
    parser.add_argument("--version", action="version", version=f"LedgerLab {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log progress messages")
    parser.add_argument("--debug", action="store_true", help="Log debug messages")

    tables = (("session options", SESSION_OPTIONS), ("report options", REPORT_OPTIONS))
    for group_name, table in tables:
        group = parser.add_argument_group(group_name)
        for spec in table:
            strings = [_long_option(name) for name in spec.names]
            if spec.flag is not None:
                strings.insert(0, f"-{spec.flag}")
            group.add_argument(
                *strings,
                action=_SetOption,
                spec=spec,
                dest=f"opt_{spec.name}",
                metavar=spec.name.rstrip("_").upper() if spec.takes_argument else None,
                help=spec.help.replace("%", "%%"),
            )

    parser.add_argument("command", help=f"One of: {', '.join(commands)}")
    parser.add_argument(
        "query", nargs="*", help="Query terms (account regex, @payee, #code, =note)"
    )
    parser.set_defaults(settings=[])
    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    if args.debug:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _apply_settings(session: Session, report: Report, settings: list) -> None:
    for name, value, source in settings:
        cell = session.options.lookup(name) or report.options[name]
        cell.append(value, source=source)


def run(argv: list[str] | None = None, stdout: IO[str] | None = None) -> int:
    """
    Run one command line.

    Args:
        argv: Arguments without the program name (``sys.argv[1:]`` when None)
        stdout: Stream for report output (``sys.stdout`` when None)

    Returns:
        Process exit status: 0 on success, 1 on error
    """
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)
    _configure_logging(args)

    session = Session()
    report = Report(session, output_stream=stdout)
    output_file = None
    try:
        _apply_settings(session, report, args.settings)

        command = report.lookup(f"cmd_{args.command}")
        if command is None:
            command = report.lookup(f"precmd_{args.command}")
            if command is None:
                print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
                return 1
            if session.journal_path():
                session.load()
        else:
            session.load()

        if report.options.value("output_"):
            output_file = open(report.options.value("output_"), "w", encoding="utf-8")
            report.output_stream = output_file

        command(CallArgs(args.query, report))
    except (EvaluationError, JournalLoadError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if output_file is not None:
            output_file.close()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
