"""
Decode command text stored through one of the legacy history encodings.

Two encodings show up in history logs: C-style backslash escapes (libedit
writes spaces as ``\\040``) and URL percent-encoding. decode() applies one
step at a time until the text stops changing. Every changing step shortens
the string, so the loop terminates and decode() is idempotent.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import re
from urllib.parse import unquote

#: First line of a libedit history file; never a real command.
HISTORY_SENTINEL = "_HiStOrY_V2_"

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}

_ESCAPE_RE = re.compile(r"\\([0-7]{1,3}|x[0-9A-Fa-f]{1,2}|.)", re.DOTALL)
_PERCENT_RE = re.compile(r"%[0-9A-Fa-f]{2}")


def _replace_escape(match: re.Match) -> str:
    token = match.group(1)
    if token[0] in "01234567":
        return chr(int(token, 8))
    if token[0] == "x" and len(token) > 1:
        return chr(int(token[1:], 16))
    return _SIMPLE_ESCAPES.get(token, token)


def c_unescape(text: str) -> str:
    """Unescape C-style sequences; unknown escapes just drop the backslash."""
    return _ESCAPE_RE.sub(_replace_escape, text)


def _decode_step(code: str) -> str:
    if "\\0" in code or "\\1" in code:
        return c_unescape(code)
    if _PERCENT_RE.search(code):
        # unquote, not unquote_plus: "+" is an operator in Python source
        return unquote(code)
    return code


def decode(code: str) -> str:
    """Decode stored command text. decode(decode(s)) == decode(s) for all s."""
    current = code
    while True:
        decoded = _decode_step(current)
        if decoded == current:
            return current
        current = decoded


def encode_history_line(source: str) -> str:
    """Fold a (possibly multi-line) statement onto one history line.

    Single-line statements are written unchanged. Multi-line ones get their
    backslashes doubled and newlines written as ``\\012``; the ``\\0`` marker
    routes them through c_unescape() in decode().
    """
    if "\n" not in source:
        return source
    return source.replace("\\", "\\\\").replace("\n", "\\012")
