#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for greentext, legacy wrappers, archive markup and line breaks."""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fuuka.services.formatting import (
    LEGACY_WRAPPERS,
    archive_markup,
    finalize,
    greentext,
    nl2br,
    strip_legacy_wrappers,
)


DIV_OPEN, DIV_CLOSE = LEGACY_WRAPPERS[0]
SPAN_OPEN, SPAN_CLOSE = LEGACY_WRAPPERS[1]


# ── Greentext ─────────────────────────────────────────────────────────────────

def test_quote_line_wrapped():
    assert greentext("&gt;implying\nnormal") == '<span class="greentext">&gt;implying</span>\nnormal'


def test_leading_newline_stays_outside_span():
    assert greentext("a\n&gt;b") == 'a\n<span class="greentext">&gt;b</span>'


def test_crlf_lines():
    assert greentext("&gt;a\r\n&gt;b") == (
        '<span class="greentext">&gt;a</span>\r\n<span class="greentext">&gt;b</span>'
    )


def test_custom_class():
    assert greentext("&gt;x", "quote") == '<span class="quote">&gt;x</span>'


def test_anchor_lines_not_wrapped():
    html = '<a href="#1" class="backlink">&gt;&gt;1</a>'
    assert greentext(html) == html


def test_arrow_mid_line_not_wrapped():
    assert greentext("a &gt; b") == "a &gt; b"


# ── Legacy wrappers ───────────────────────────────────────────────────────────

def test_admin_div_wrapper_stripped():
    assert strip_legacy_wrappers(f"{DIV_OPEN}hello{DIV_CLOSE}", "A") == "hello"


def test_admin_span_wrapper_pairs_with_spoiler_closer():
    assert SPAN_CLOSE == "[/spoiler]"
    assert strip_legacy_wrappers(f"{SPAN_OPEN}hello[/spoiler]", "A") == "hello"


def test_wrapper_kept_for_other_capcodes():
    body = f"{DIV_OPEN}hello{DIV_CLOSE}"
    assert strip_legacy_wrappers(body, "M") == body
    assert strip_legacy_wrappers(body, "N") == body


def test_wrapper_must_start_the_body():
    body = f"x{DIV_OPEN}hello{DIV_CLOSE}"
    assert strip_legacy_wrappers(body, "A") == body


# ── Archive markup ────────────────────────────────────────────────────────────

def test_banned_message():
    assert archive_markup("[banned]USER WAS BANNED[/banned]") == (
        '<span class="banned">USER WAS BANNED</span>'
    )


def test_literal_tags():
    assert archive_markup("[banned:lit]x[/banned:lit]") == "[banned]x[/banned]"
    assert archive_markup("[MOOT:LIT]") == "[moot]"


# ── Line breaks ───────────────────────────────────────────────────────────────

def test_nl2br_keeps_newline():
    assert nl2br("a\nb\r\nc") == "a<br />\nb<br />\r\nc"


def test_finalize_trims_and_breaks():
    assert finalize("  a\nb \n") == "a<br />\nb"


def test_finalize_leaves_pre_alone():
    assert finalize("x\n<pre>a\nb</pre>") == "x<br />\n<pre>a\nb</pre>"


# -----------------------------------------------------------------------------
