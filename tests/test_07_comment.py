#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for the comment rendering pipeline end to end."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

import pytest

from fuuka.core.security import SEE_IP, Viewer
from fuuka.services import comment as comment_mod
from fuuka.services.comment import (
    Comment,
    CommentError,
    MissingPostIndexError,
    RenderConfig,
    Stage,
    archive_to_utc,
    fourchan_date,
    render,
)
from fuuka.services.formatting import LEGACY_WRAPPERS
from fuuka.services.links import UriBuilder
from fuuka.services.memo import UNSET, Memo
from fuuka.services.post_index import new_batch_index
from tests.conftest import make_row


# -----------------------------------------------------------------------------

BASE = "http://arch.test"


def _config(**options) -> RenderConfig:
    options.setdefault("autolink_popup", False)
    return RenderConfig(board="a", links=UriBuilder(BASE), **options)


def _thread(*rows, **options):
    index = new_batch_index()
    comments = Comment.from_rows(list(rows), _config(**options), index)
    return comments, index


def _one(body, **fields):
    config_options = fields.pop("config", {})
    (c,), _ = _thread(make_row(10, 10, body, **fields), **config_options)
    return c.comment_processed


# ── References in a batch ─────────────────────────────────────────────────────

def test_reply_links_to_post_in_thread():
    (op, target, reply), index = _thread(
        make_row(999),
        make_row(123, 999),
        make_row(200, 999, ">>123"),
    )
    html = reply.comment_processed
    assert html.startswith(f'<a href="{BASE}/a/thread/999/#123" class="backlink"')
    assert len(target.backlinks) == 1
    assert f'{BASE}/a/thread/999/#200"' in target.backlinks[0]


def test_forward_reference_resolves_in_batch():
    (op, later), _ = _thread(make_row(999, 999, ">>1000"), make_row(1000, 999))
    assert f'href="{BASE}/a/thread/999/#1000"' in op.comment_processed


def test_hash_only_thread_view():
    (op, reply), _ = _thread(make_row(999), make_row(1000, 999, ">>999"), hash_only=True)
    html = reply.comment_processed
    assert html.startswith('<a href="#999" class="backlink op"')


def test_rendering_twice_is_identical():
    (op, reply), index = _thread(make_row(999), make_row(1000, 999, ">>999\n>>999"))
    first = reply.render()
    assert reply.render() == first
    assert render(reply, index, reply.config).html == first
    assert index.backlink_count("999") == 1


def test_prefetch_can_be_skipped():
    index = new_batch_index()
    (c,) = Comment.from_rows([make_row(1, 1, "hi")], _config(), index, prefetch=False)
    assert c.stage is Stage.RAW
    c.render()
    assert c.stage is Stage.CACHED


# ── Markup through the pipeline ───────────────────────────────────────────────

def test_greentext_and_breaks():
    assert _one(">be me\n>???") == (
        '<span class="greentext">&gt;be me</span><br />\n<span class="greentext">&gt;???</span>'
    )


def test_html_is_escaped():
    assert _one('<script>alert("x")</script>') == "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;"


def test_block_code_has_no_breaks():
    assert _one("[code]line one\nline two[/code]") == "<pre>line one\nline two</pre>"


def test_inline_code():
    assert _one("[code]single line[/code]") == "<code>single line</code>"


def test_autolink_in_body():
    assert _one("www.example.com/path).", config={"autolink_popup": True}) == (
        '<a href="http://www.example.com/path" target="_blank">http://www.example.com/path</a>).'
    )


def test_admin_legacy_wrapper_removed():
    opener, closer = LEGACY_WRAPPERS[0]
    assert _one(f"{opener}[b]hello[/b]{closer}", capcode="A") == "<b>hello</b>"


def test_admin_wrapper_kept_and_escaped_for_users():
    opener, closer = LEGACY_WRAPPERS[0]
    assert _one(f"{opener}hello{closer}").startswith("&lt;div style=")


def test_inter_board_unknown():
    assert _one(">>>/pol/456") == '<a href="//boards.4chan.org/pol/res/456">&gt;&gt;&gt;/pol/456</a>'


# ── Archive boards ────────────────────────────────────────────────────────────

def test_archive_banned_markup():
    assert _one("[banned]USER WAS BANNED[/banned]", config={"archive": True}) == (
        '<span class="banned">USER WAS BANNED</span>'
    )


def test_archive_markup_skipped_for_ghosts():
    html = _one("[banned]x[/banned]", subnum=1, config={"archive": True})
    assert html == "[banned]x[/banned]"


def test_archive_literal_moot():
    assert _one("[moot:lit]", config={"archive": True}) == "[moot]"


def test_archive_moot_tag_from_theme():
    html = _one("[moot]hi[/moot]", config={
        "archive": True, "moot_start_tag": '<span class="moot">', "moot_end_tag": "</span>",
    })
    assert html == '<span class="moot">hi</span>'


def test_archive_timestamp_shifted_to_utc():
    (c,), _ = _thread(make_row(1, timestamp=1357380000), archive=True)
    assert c.timestamp == 1357380000 + 5 * 3600
    assert c.original_timestamp == c.timestamp


def test_archive_to_utc_daylight_saving():
    assert archive_to_utc(1372680000) == 1372680000 + 4 * 3600
    assert archive_to_utc(0) == 0


def test_fourchan_date():
    assert fourchan_date(1357380000) == "1/5/13(Sat)10:00"


# ── Errors ────────────────────────────────────────────────────────────────────

def test_render_without_index_raises():
    c = Comment(make_row(1, 1, "hi"), _config())
    with pytest.raises(MissingPostIndexError):
        c.render()
    with pytest.raises(MissingPostIndexError):
        render(make_row(1, 1, "hi"), None, _config())


def test_render_against_other_index_raises():
    (c,), _ = _thread(make_row(1, 1, "hi"))
    with pytest.raises(CommentError):
        render(c, new_batch_index(), c.config)


def test_render_mapping_binds_it():
    index = new_batch_index()
    result = render(make_row(1, 1, "[b]x[/b]"), index, _config())
    assert result.html == "<b>x</b>"
    assert result.backlinks == []
    assert result.processed_fields["comment_processed"] == "<b>x</b>"
    assert index.has_thread(1)


def test_pipeline_failure_falls_back_to_plain_text(monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(comment_mod, "parse_bbcode", boom)
    with caplog.at_level(logging.WARNING, logger="fuuka.services.comment"):
        html = _one("<b>\n[b]x[/b]")
    assert html == "&lt;b&gt;<br />\n[b]x[/b]"
    assert "comment processing failed" in caplog.text


# ── Display fields ────────────────────────────────────────────────────────────

def test_display_fields_are_escaped():
    (c,), _ = _thread(make_row(1, 1, "", name="<b>anon</b>", title='"t"', trip="!abc"))
    assert c.name_processed == "&lt;b&gt;anon&lt;/b&gt;"
    assert c.title_processed == "&quot;t&quot;"
    assert c.trip_processed == "!abc"
    assert c.email_processed == ""


def test_country_name():
    (c, d), _ = _thread(make_row(1, poster_country="de"), make_row(2, 1, poster_country="??"))
    assert c.poster_country_name_processed == "Germany"
    assert d.poster_country_name is None
    assert d.poster_country_name_processed is None


def test_memo_sentinel_is_distinct():
    memo = Memo()
    assert memo.get("x") is UNSET
    memo.set("x", None)
    assert memo.get("x") is None
    assert memo.get_or_compute("x", lambda: "recomputed") is None
    assert UNSET != "" and UNSET is not None


def test_empty_title_memoised():
    (c,), _ = _thread(make_row(1, title=""))
    assert not c._memo.is_set("title_processed")
    assert c.title_processed == ""
    assert c._memo.is_set("title_processed")
    assert c._memo.get("title_processed") == ""


# ── Redaction and serialisation ───────────────────────────────────────────────

def test_redaction_hides_ip_and_delpass():
    (c,), _ = _thread(make_row(1, poster_ip="10.0.0.1", delpass="secret"))
    c.redact(Viewer.anonymous())
    assert c.poster_ip is None
    assert c.delpass is None


def test_redaction_keeps_ip_for_privileged_viewer():
    (c,), _ = _thread(make_row(1, poster_ip="10.0.0.1", delpass="secret"))
    c.redact(Viewer(subject="mod", permissions=frozenset({SEE_IP})))
    assert c.poster_ip == "10.0.0.1"
    assert c.delpass is None


def test_to_dict_shape():
    (op, reply), _ = _thread(make_row(5, 5, "op"), make_row(6, 5, ">>5"))
    data = op.to_dict()
    assert "delpass" not in data
    assert data["comment_processed"] == "op"
    assert len(data["backlinks"]) == 1
    assert data["media"] is None
    assert "formatted" not in data


def test_formatted_post_box():
    (c,), _ = _thread(make_row(7, 7, "[b]hello[/b]", name="Anonymous"))
    box = c.to_dict(formatted=True)["formatted"]
    assert 'id="7"' in box
    assert "<b>hello</b>" in box
    assert "Anonymous" in box


# -----------------------------------------------------------------------------
