"""Fixed-width text layout and id-ID value formatting for receipts."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

_FRACTION_QUANTUM = Decimal("0.001")


def get_string_width(value: str) -> int:
    """Return the printed column count of ``value``.

    Thermal printers render anything outside ASCII in a double-width cell, so
    every code point >= 128 counts as two columns.
    """
    return sum(1 if ord(ch) < 128 else 2 for ch in value)


def pad_line(left: str, right: str, width: int) -> str:
    """Right-justify ``right`` against ``left`` within ``width`` columns."""
    spaces = max(1, width - get_string_width(left) - get_string_width(right))
    return left + " " * spaces + right + "\n"


def wrap_text(text: str, max_width: int) -> list[str]:
    """Greedy word wrap using printed column widths.

    A word wider than ``max_width`` is placed on its own line; words are never
    broken.
    """
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if get_string_width(candidate) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        if get_string_width(word) > max_width:
            lines.append(word)
            current = ""
        else:
            current = word
    if current:
        lines.append(current)
    return lines


def format_number(amount: float | int | Decimal) -> str:
    """Format with id-ID separators: ``1234567.5`` -> ``1.234.567,5``."""
    value = Decimal(str(amount)).quantize(_FRACTION_QUANTUM, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    integer, _, fraction = f"{abs(value):f}".partition(".")
    grouped = f"{int(integer):,}".replace(",", ".")
    fraction = fraction.rstrip("0")
    if fraction:
        return f"{sign}{grouped},{fraction}"
    return f"{sign}{grouped}"


def format_currency(amount: float | int | Decimal) -> str:
    return f"Rp {format_number(amount)}"


def format_date(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y, %H.%M")


def format_rate(rate: float | int) -> str:
    """Render a percentage rate without a redundant ``.0``."""
    return f"{rate:g}"
