#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for >>123 and >>>/board/123 reference resolution and backlinks."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from fuuka.services.board import BoardConfig
from fuuka.services.links import UriBuilder
from fuuka.services.post_index import new_batch_index
from fuuka.services.references import (
    EXTERNAL_RE,
    INTERNAL_RE,
    Branch,
    ReferenceContext,
    ReferenceResolver,
    ReferenceToken,
    StaticBoardDirectory,
    TokenKind,
    resolve,
)


# -----------------------------------------------------------------------------

BASE = "http://arch.test"


def _resolver(index=None, boards=(), **ctx):
    if index is None:
        index = new_batch_index()
        index.register(999, 999)
        index.register(999, 123)
        index.register(999, 200)
    fields = {"board": "a", "thread_num": 999, "num": 200}
    fields.update(ctx)
    return ReferenceResolver(
        ReferenceContext(**fields),
        index,
        UriBuilder(BASE),
        StaticBoardDirectory(boards),
    ), index


# ── Intra-board ───────────────────────────────────────────────────────────────

def test_same_thread_reference_and_backlink():
    resolver, index = _resolver()
    html = resolver.link_internal("&gt;&gt;123")
    assert html.startswith(f'<a href="{BASE}/a/thread/999/#123" class="backlink"')
    assert 'data-post="123"' in html
    assert html.endswith(">&gt;&gt;123</a>")

    backlinks = index.get_backlinks_for("123")
    assert len(backlinks) == 1
    assert f'href="{BASE}/a/thread/999/#200"' in backlinks[0]
    assert "&gt;&gt;200</a>" in backlinks[0]


def test_hash_only_uses_fragment():
    resolver, _ = _resolver(hash_only=True)
    assert resolver.link_internal("&gt;&gt;123").startswith('<a href="#123"')


def test_reference_to_thread_gets_op_class():
    resolver, _ = _resolver()
    assert 'class="backlink op"' in resolver.link_internal("&gt;&gt;999")


def test_unknown_post_redirects():
    resolver, index = _resolver()
    html = resolver.link_internal("&gt;&gt;555")
    assert f'href="{BASE}/a/post/555/"' in html
    assert index.backlink_count("555") == 1


def test_zero_padded_thread_number_redirects():
    resolver, index = _resolver()
    html = resolver.link_internal("&gt;&gt;0999")
    assert f'href="{BASE}/a/post/0999/"' in html
    assert "backlink op" not in html


def test_realtime_links_into_current_thread_even_with_hash_only():
    resolver, _ = _resolver(realtime=True, hash_only=True)
    assert f'href="{BASE}/a/thread/999/#555"' in resolver.link_internal("&gt;&gt;555")


def test_controller_method_in_href():
    resolver, _ = _resolver(controller_method="last/50")
    assert f'href="{BASE}/a/last/50/999/#123"' in resolver.link_internal("&gt;&gt;123")


def test_ghost_reference_uses_underscore_key():
    index = new_batch_index()
    index.register(999, 999)
    index.register(999, 123, 4)
    resolver, _ = _resolver(index=index)
    html = resolver.link_internal("&gt;&gt;123,4")
    assert f'href="{BASE}/a/thread/999/#123_4"' in html
    assert 'data-post="123_4"' in html
    assert ">&gt;&gt;123,4</a>" in html
    assert index.backlink_count("123_4") == 1


def test_ghost_backlink_text_uses_comma_label():
    resolver, index = _resolver(num=300, subnum=2)
    resolver.link_internal("&gt;&gt;123")
    (link,) = index.get_backlinks_for("123")
    assert "#300_2" in link
    assert "&gt;&gt;300,2</a>" in link


def test_three_arrows_not_taken_by_intra_pass():
    resolver, index = _resolver()
    assert resolver.link_internal("&gt;&gt;&gt;/a/1") == "&gt;&gt;&gt;/a/1"
    assert index.backlink_count("1") == 0


# ── Inter-board ───────────────────────────────────────────────────────────────

def test_unknown_board_goes_to_external_host():
    resolver, index = _resolver()
    html = resolver.link_external("&gt;&gt;&gt;/pol/456")
    assert html == '<a href="//boards.4chan.org/pol/res/456">&gt;&gt;&gt;/pol/456</a>'
    assert index.backlink_count("456") == 0


def test_unknown_board_without_post():
    resolver, _ = _resolver()
    assert resolver.link_external("&gt;&gt;&gt;/pol/") == (
        '<a href="//boards.4chan.org/pol/">&gt;&gt;&gt;/pol/</a>'
    )


def test_known_board_post():
    resolver, _ = _resolver(boards=[BoardConfig("g")])
    html = resolver.link_external("&gt;&gt;&gt;/g/123")
    assert f'href="{BASE}/g/post/123/"' in html
    assert 'data-board="g"' in html


def test_known_board_root():
    resolver, _ = _resolver(boards=[BoardConfig("g")])
    assert resolver.link_external("&gt;&gt;&gt;/g/") == (
        f'<a href="{BASE}/g/">&gt;&gt;&gt;/g/</a>'
    )


# ── Tokens and branches ───────────────────────────────────────────────────────

def test_intra_token_keeps_label_as_written():
    token = ReferenceToken.intra(INTERNAL_RE.search("see &gt;&gt;0123,4 here"))
    assert token.kind is TokenKind.INTRA
    assert token.label == "0123,4"
    assert token.key == "0123_4"


def test_inter_token_fields():
    token = ReferenceToken.inter(EXTERNAL_RE.search("&gt;&gt;&gt;/a/5,1/"))
    assert token.kind is TokenKind.INTER
    assert (token.board, token.label, token.link) == ("a", "5,1", "/a/5,1/")
    bare = ReferenceToken.inter(EXTERNAL_RE.search("&gt;&gt;&gt;/a/"))
    assert bare.label == ""


@pytest.mark.parametrize("label,realtime,branch", [
    ("999", False, Branch.THREAD),
    ("123", False, Branch.INDEXED),
    ("555", True, Branch.REALTIME),
    ("555", False, Branch.REDIRECT),
    ("0999", False, Branch.REDIRECT),
    ("0123", False, Branch.REDIRECT),
])
def test_resolve_picks_one_branch(label, realtime, branch):
    index = new_batch_index()
    index.register(999, 999)
    index.register(999, 123)
    assert resolve(label, index, 999, realtime).branch is branch


def test_indexed_reference_into_other_thread():
    index = new_batch_index()
    index.register(999, 999)
    index.register(777, 123)
    res = resolve("123", index, 999)
    assert res.branch is Branch.INDEXED
    assert res.thread_num == 777


# -----------------------------------------------------------------------------
