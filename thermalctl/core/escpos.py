"""ESC/POS command bytes for receipt printers."""

from __future__ import annotations

ESC = b"\x1b"
GS = b"\x1d"

INIT = ESC + b"@"
ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
ALIGN_RIGHT = ESC + b"a\x02"
BOLD_ON = ESC + b"E\x01"
BOLD_OFF = ESC + b"E\x00"
DOUBLE_HEIGHT = GS + b"!\x11"
NORMAL_SIZE = GS + b"!\x00"
FEED_LINE = b"\n"
CUT_PAPER = GS + b"V\x41\x00"

_ALIGNMENTS = {
    "left": ALIGN_LEFT,
    "center": ALIGN_CENTER,
    "right": ALIGN_RIGHT,
}

# Longest first so INIT never shadows a longer sequence sharing its prefix.
_CONTROL_SEQUENCES = sorted(
    {
        INIT,
        ALIGN_LEFT,
        ALIGN_CENTER,
        ALIGN_RIGHT,
        BOLD_ON,
        BOLD_OFF,
        DOUBLE_HEIGHT,
        NORMAL_SIZE,
        CUT_PAPER,
    },
    key=len,
    reverse=True,
)


def align(name: str) -> bytes:
    try:
        return _ALIGNMENTS[name]
    except KeyError:
        allowed = ", ".join(sorted(_ALIGNMENTS))
        raise ValueError(f"Unknown alignment '{name}'. Allowed: {allowed}") from None


def bold(on: bool) -> bytes:
    return BOLD_ON if on else BOLD_OFF


def double_height(on: bool) -> bytes:
    return DOUBLE_HEIGHT if on else NORMAL_SIZE


def feed(lines: int = 1) -> bytes:
    if lines < 0:
        raise ValueError("feed lines must not be negative")
    return FEED_LINE * lines


def cut() -> bytes:
    return CUT_PAPER


def text(value: str) -> bytes:
    return value.encode("utf-8")


def strip_controls(payload: bytes) -> str:
    """Drop known command sequences and decode the printable remainder."""
    out = bytearray()
    i = 0
    while i < len(payload):
        for seq in _CONTROL_SEQUENCES:
            if payload.startswith(seq, i):
                i += len(seq)
                break
        else:
            out.append(payload[i])
            i += 1
    return out.decode("utf-8", errors="replace")
