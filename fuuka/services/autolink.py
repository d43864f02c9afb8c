#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Autolinker
==========
Wraps bare ``http://``, ``https://`` and ``www.`` URLs in anchors.

A URL must start the text or follow whitespace, ``(`` or ``]``.  It runs until
whitespace, ``)`` or ``<``.  A single trailing period is moved outside the
anchor.  Bracketed fragments (``[...]``, usually leftover tags) are dropped
from the href but kept in the visible text.

Existing anchors are skipped so an anchor is never nested in another.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re


# -----------------------------------------------------------------------------

URL_RE = re.compile(r"(^|\s|\(|\])((http(s?)://)|(www\.))(\w+[^\s\)\<]+)", re.IGNORECASE)
_ANCHOR_SPLIT_RE = re.compile(r"(<a\b[^>]*>.*?</a>)", re.IGNORECASE | re.DOTALL)
_FRAGMENT_LEAD = "[/!"


# -----------------------------------------------------------------------------

def strip_bracket_fragments(url: str) -> str:
    """
    Remove every ``[...]`` fragment: an optional run of ``[``, ``/`` or ``!``,
    then non-bracket text, then ``]``.  One pass over *url*.
    """
    if "]" not in url:
        return url

    out = []
    pos = 0
    while True:
        close = url.find("]", pos)
        if close < 0:
            break
        start = url.rfind("[", pos, close)
        if start < 0:
            start = pos
        else:
            while start > pos and url[start - 1] in _FRAGMENT_LEAD:
                start -= 1
        out.append(url[pos:start])
        pos = close + 1
    out.append(url[pos:])
    return "".join(out)


def _linkify(text: str, target: str, at_start: bool = True) -> str:
    def _replace(m: re.Match) -> str:
        lead, rest = m.group(1), m.group(6)
        secure, www = m.group(4) or "", m.group(5) or ""

        # text right after an anchor is not the start of the comment
        if not lead and not at_start:
            return m.group(0)

        period = ""
        if rest.endswith("."):
            period = "."
            rest = rest[:-1]

        href = f"http{secure}://{www}{strip_bracket_fragments(rest)}"
        label = f"http{secure}://{www}{rest}"
        return f'{lead}<a href="{href}"{target}>{label}</a>{period}'

    return URL_RE.sub(_replace, text)


def autolink(html: str, popup: bool = False) -> str:
    target = ' target="_blank"' if popup else ""
    parts = _ANCHOR_SPLIT_RE.split(html)
    for i, part in enumerate(parts):
        # odd indices are the captured anchors
        if i % 2 == 0 and part:
            parts[i] = _linkify(part, target, at_start=(i == 0))
    return "".join(parts)


# -----------------------------------------------------------------------------
