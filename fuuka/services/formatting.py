#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Line and board-specific formatting passes for post bodies.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re


# -----------------------------------------------------------------------------
# Legacy administrator wrappers
# -----------------------------------------------------------------------------

# Old administrator posts were scraped with their padded container still around
# the body.  Each opener has exactly one closer that goes with it.
LEGACY_WRAPPERS: tuple[tuple[str, str], ...] = (
    (
        '<div style="padding: 5px;margin-left: .5em;border-color: #faa;'
        'border: 2px dashed rgba(255,0,0,.1);border-radius: 2px">',
        "</div>",
    ),
    (
        '<span style="padding: 5px;margin-left: .5em;border-color: #faa;'
        'border: 2px dashed rgba(255,0,0,.1);border-radius: 2px">',
        "[/spoiler]",
    ),
)

ADMIN_CAPCODE = "A"


def strip_legacy_wrappers(comment: str, capcode: str | None) -> str:
    """Remove the legacy container from a raw administrator post body."""
    if capcode != ADMIN_CAPCODE:
        return comment

    for opener, closer in LEGACY_WRAPPERS:
        if comment.startswith(opener):
            comment = comment[len(opener):]
            if comment.endswith(closer):
                comment = comment[:-len(closer)]
    return comment


# -----------------------------------------------------------------------------
# Greentext
# -----------------------------------------------------------------------------

GREENTEXT_RE = re.compile(r"(\r?\n|^)(&gt;.*?)(?=$|\r?\n)", re.IGNORECASE)


def greentext(escaped: str, css_class: str = "greentext") -> str:
    """Wrap every line that starts with an escaped ``>`` in a quote span."""
    return GREENTEXT_RE.sub(rf'\1<span class="{css_class}">\2</span>', escaped)


# -----------------------------------------------------------------------------
# Archive-only markup
# -----------------------------------------------------------------------------

_BANNED_RE = re.compile(r"\[banned\](.*?)\[/banned\]", re.IGNORECASE)
_LITERAL_TAGS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\[banned:lit\]", re.IGNORECASE), "[banned]"),
    (re.compile(r"\[/banned:lit\]", re.IGNORECASE), "[/banned]"),
    (re.compile(r"\[moot:lit\]", re.IGNORECASE), "[moot]"),
    (re.compile(r"\[/moot:lit\]", re.IGNORECASE), "[/moot]"),
)


def archive_markup(html: str) -> str:
    """[banned] messages and the ``:lit`` escapes that print tags verbatim."""
    html = _BANNED_RE.sub(r'<span class="banned">\1</span>', html)
    for pattern, literal in _LITERAL_TAGS:
        html = pattern.sub(lambda _m, lit=literal: lit, html)
    return html


# -----------------------------------------------------------------------------
# Line breaks
# -----------------------------------------------------------------------------

_NEWLINE_RE = re.compile(r"(\r\n|\n\r|\n|\r)")
_PRE_RE = re.compile(r"<pre>(.*?)</pre>", re.DOTALL)


def nl2br(text: str) -> str:
    return _NEWLINE_RE.sub(r"<br />\1", text)


def strip_breaks_in_pre(html: str) -> str:
    return _PRE_RE.sub(lambda m: "<pre>" + m.group(1).replace("<br />", "") + "</pre>", html)


def finalize(html: str) -> str:
    """Trim, convert newlines, and keep block code free of synthesized breaks."""
    return strip_breaks_in_pre(nl2br(html.strip(" \t\n\r\0\x0b")))


# -----------------------------------------------------------------------------
