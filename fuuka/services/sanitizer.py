#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Sanitizer
=========
Text coming out of a scrape is not guaranteed to be valid UTF-8, and none of it
can be trusted as HTML.  Everything that ends up in a page goes through here
first.

  to_valid_utf8()  — lossy repair, drops invalid sequences, never raises
  escape_html()    — escapes & < > " (ampersand first), leaves existing
                     entities alone
  process()        — both, in that order
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re


# -----------------------------------------------------------------------------

# An ampersand that does not already start a named, decimal or hex entity
_BARE_AMP_RE = re.compile(r"&(?!(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9A-Fa-f]+);)")


# -----------------------------------------------------------------------------

def to_valid_utf8(value: str | bytes | None) -> str:
    """Return *value* as a str that is guaranteed to encode as UTF-8."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="ignore")
    # str may still carry lone surrogates (e.g. from surrogateescape decoding)
    return value.encode("utf-8", errors="ignore").decode("utf-8")


def escape_html(text: str) -> str:
    text = _BARE_AMP_RE.sub("&amp;", text)
    return (
        text.replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
    )


def process(value: str | bytes | None) -> str:
    """Repair and escape a display field (name, title, trip, ...)."""
    return escape_html(to_valid_utf8(value))


# -----------------------------------------------------------------------------
