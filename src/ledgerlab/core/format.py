"""
Format strings and text truncation.

A format string mixes literal text with ``%[-][min][.max](expr)``
placeholders. ``%%`` is a literal percent sign and ``%/`` separates the format
used for the first posting of an entry from the one used for the following
postings. Placeholders are right-justified to ``min`` columns unless ``-`` asks
for left justification, then cut to ``max`` columns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ExpressionError
from .expr import Expr
from .scope import Scope
from .values import print_value

_PLACEHOLDER_RE = re.compile(r"%(-)?(\d+)?(?:\.(\d+))?\(")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\"}

TRUNCATE_STYLES = ("trailing", "middle", "leading")


def unescape(text: str) -> str:
    r"""Expand ``\n``, ``\t`` and ``\\`` as typed on a command line."""
    return re.sub(r"\\([nt\\])", lambda m: _ESCAPES[m[1]], text)


def split_format(text: str) -> tuple[str, str | None]:
    """Split on ``%/`` into the first-posting and next-posting formats."""
    index = 0
    while True:
        index = text.find("%", index)
        if index < 0 or index + 1 >= len(text):
            return text, None
        if text[index + 1] == "/":
            return text[:index], text[index + 2 :]
        index += 2


@dataclass
class TextElement:
    text: str

    def render(self, scope: Scope, column: int) -> str:
        return self.text

    def describe(self) -> str:
        return f"TEXT: {self.text!r}"


@dataclass
class ExprElement:
    expr: Expr
    min_width: int | None = None
    max_width: int | None = None
    left_align: bool = False

    def render(self, scope: Scope, column: int) -> str:
        value = self.expr.calc(scope)
        text = value if isinstance(value, str) else print_value(value)
        lines = []
        for line in text.split("\n") if text else [""]:
            if self.max_width is not None and len(line) > self.max_width:
                line = truncate(line, self.max_width)
            if self.min_width:
                line = line.ljust(self.min_width) if self.left_align else line.rjust(self.min_width)
            lines.append(line)
        return ("\n" + " " * column).join(lines)

    def describe(self) -> str:
        flags = "left" if self.left_align else "right"
        return (
            f"EXPR: {self.expr.source!r} min={self.min_width} "
            f"max={self.max_width} align={flags}"
        )


class Format:
    """
    Compiled format string.

    **Example Usage:**
        ```python
        fmt = Format("%-10(date) %(amount)\\n")
        fmt.render(PostingScope(report, posting))
        ```
    """

    def __init__(self, text: str = ""):
        self.text = text
        self.elements: list[TextElement | ExprElement] = self._compile(unescape(text))

    @staticmethod
    def _compile(text: str) -> list[TextElement | ExprElement]:
        elements: list[TextElement | ExprElement] = []
        buffer: list[str] = []
        index = 0
        while index < len(text):
            char = text[index]
            if char != "%":
                buffer.append(char)
                index += 1
                continue
            if text.startswith("%%", index):
                buffer.append("%")
                index += 2
                continue

            match = _PLACEHOLDER_RE.match(text, index)
            if match is None:
                raise ExpressionError(f"Malformed format directive at position {index} in {text!r}")
            end = _matching_paren(text, match.end() - 1)
            if buffer:
                elements.append(TextElement("".join(buffer)))
                buffer = []
            elements.append(
                ExprElement(
                    expr=Expr(text[match.end() : end]).compile(),
                    min_width=int(match[2]) if match[2] else None,
                    max_width=int(match[3]) if match[3] else None,
                    left_align=bool(match[1]),
                )
            )
            index = end + 1
        if buffer:
            elements.append(TextElement("".join(buffer)))
        return elements

    def render(self, scope: Scope) -> str:
        out: list[str] = []
        column = 0
        for element in self.elements:
            piece = element.render(scope, column)
            out.append(piece)
            newline = piece.rfind("\n")
            column = len(piece) - newline - 1 if newline >= 0 else column + len(piece)
        return "".join(out)

    def describe(self) -> list[str]:
        return [element.describe() for element in self.elements]

    def __str__(self) -> str:
        return self.text


def _matching_paren(text: str, start: int) -> int:
    depth = 0
    quote: str | None = None
    index = start
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 1
            elif char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    raise ExpressionError(f"Unbalanced parentheses in format {text!r}")


def abbreviate_account(name: str, width: int, abbrev_len: int) -> str:
    """
    Shorten intermediate account segments, left to right, until ``name`` fits.

    The leaf segment is never abbreviated here.
    """
    parts = name.split(":")
    for index in range(len(parts) - 1):
        if len(":".join(parts)) <= width:
            break
        if len(parts[index]) > abbrev_len:
            parts[index] = parts[index][:abbrev_len]
    return ":".join(parts)


def truncate(
    text: str,
    width: int,
    account_abbrev_len: int = 0,
    style: str = "trailing",
) -> str:
    """
    Fit ``text`` into ``width`` columns.

    Args:
        text: Text to shorten
        width: Maximum width (0 or less means no limit)
        account_abbrev_len: When positive and ``text`` is an account path,
            intermediate segments are first shortened to this many characters
        style: Where to elide when the text still does not fit: 'trailing',
            'middle' or 'leading'

    Returns:
        Text at most ``width`` characters wide
    """
    if width <= 0 or len(text) <= width:
        return text
    if account_abbrev_len > 0 and ":" in text:
        text = abbreviate_account(text, width, account_abbrev_len)
        if len(text) <= width:
            return text
    if width <= 2:
        return text[:width]
    if style == "leading":
        return ".." + text[len(text) - (width - 2) :]
    if style == "middle":
        head = (width - 2) // 2
        tail = width - 2 - head
        return text[:head] + ".." + text[len(text) - tail :]
    return text[: width - 2] + ".."


def render_template(text: str, scope: Scope) -> str:
    """Render format ``text`` once against ``scope``."""
    return Format(text).render(scope)
