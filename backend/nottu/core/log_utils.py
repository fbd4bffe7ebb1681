# backend/nottu/core/log_utils.py
"""Utilities for safe logging of user-controlled values.

Emails, display names and credential ids all arrive from the client. Before
they reach a line-oriented log they pass through `sanitize_for_log`, which:
- removes ANSI escape sequences
- makes CR/LF/TAB visible instead of letting them split a record
- drops other control, bidirectional and zero-width characters
- truncates long values

WARNING: This does NOT prevent format-string injection.
Always use: logger.info("%s", user_input) NOT logger.info(user_input)
"""

from __future__ import annotations

import re
from typing import Any

_ANSI_RE = re.compile(
    r"""
    \x1B
    (?:
        [@-Z\\-_]                          # 7-bit C1 control (Fe)
      | \[ [0-?]* [ -/]* [@-~]             # CSI ... Cmd
      | \] (?: [^\x07\x1B]* (?:\x07|\x1B\\))  # OSC ... BEL or ST
    )
    """,
    re.VERBOSE,
)

# Control characters excluding \t, \n, \r (escaped separately)
_UNSAFE_CTRL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

_BIDI_RE = re.compile(r"[\u202A-\u202E\u2066-\u2069\u200E\u200F]")

_INVISIBLE_RE = re.compile(r"[\u200B-\u200D\u2060\u00AD]")

_TRUNCATED_SUFFIX = "...[truncated]"


def sanitize_for_log(value: Any, max_length: int | None = 1000) -> str:
    """Sanitize a user-controlled value for logging.

    Examples:
        >>> sanitize_for_log("a@x.com\\nFAKE ENTRY")
        'a@x.com\\\\nFAKE ENTRY'
        >>> sanitize_for_log("\\x1b[31mred\\x1b[0m")
        'red'
        >>> sanitize_for_log(None)
        '<None>'
    """
    if value is None:
        return "<None>"

    if isinstance(value, (bytes, bytearray)):
        text = value.decode("utf-8", errors="backslashreplace")
    else:
        text = str(value)

    text = _ANSI_RE.sub("", text)

    # Backslashes first so the escapes below stay unambiguous
    text = (
        text.replace("\\", "\\\\")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )

    text = _UNSAFE_CTRL_RE.sub("", text)
    text = _BIDI_RE.sub("", text)
    text = _INVISIBLE_RE.sub("", text)

    if max_length is not None and len(text) > max_length:
        keep = max(0, max_length - len(_TRUNCATED_SUFFIX))
        text = text[:keep] + _TRUNCATED_SUFFIX

    return text
