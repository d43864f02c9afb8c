#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for UTF-8 repair and HTML escaping of post text."""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fuuka.services.sanitizer import escape_html, process, to_valid_utf8


# ── to_valid_utf8 ─────────────────────────────────────────────────────────────

def test_none_becomes_empty_string():
    assert to_valid_utf8(None) == ""


def test_invalid_bytes_are_dropped():
    assert to_valid_utf8(b"ok\xff\xfe fine") == "ok fine"


def test_valid_multibyte_bytes_survive():
    assert to_valid_utf8("ÿ日本".encode("utf-8")) == "ÿ日本"


def test_lone_surrogates_are_dropped():
    assert to_valid_utf8("a\udc80b") == "ab"


def test_plain_str_unchanged():
    assert to_valid_utf8("hello > world") == "hello > world"


# ── escape_html ───────────────────────────────────────────────────────────────

def test_escapes_markup_characters():
    assert escape_html('<b>"x" & y</b>') == "&lt;b&gt;&quot;x&quot; &amp; y&lt;/b&gt;"


def test_existing_entities_not_double_escaped():
    text = "&amp; &#39; &#x27; &gt; &hellip;"
    assert escape_html(text) == text


def test_bare_ampersand_before_entity_like_text():
    assert escape_html("AT&T; &;") == "AT&T; &amp;;"


def test_single_quote_left_alone():
    assert escape_html("it's") == "it's"


def test_escape_quote_markers():
    assert escape_html(">>123\n>implying") == "&gt;&gt;123\n&gt;implying"


# ── process ───────────────────────────────────────────────────────────────────

def test_process_repairs_then_escapes():
    assert process(b"<i>\xff") == "&lt;i&gt;"


def test_process_none():
    assert process(None) == ""


# -----------------------------------------------------------------------------
