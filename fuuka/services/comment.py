#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Comment rendering
=================
Turns a stored post row into the HTML shown to readers, and exposes the other
display fields derived from the row.

Pipeline for the body (each step works on the output of the previous one):

  1. strip legacy administrator wrappers         (raw text)
  2. UTF-8 repair + HTML escaping                 → Stage.SANITIZED
  3. >>123 then >>>/board/123 anchors, backlinks  → Stage.REFERENCES_RESOLVED
  4. greentext lines
  5. bbcode                                       → Stage.MARKUP_PARSED
  6. bare URLs                                    → Stage.AUTOLINK_APPLIED
  7. archive [banned] / :lit markup  (archive primary posts only)
  8. trim, newlines → <br />, none inside <pre>   → Stage.CACHED

Every derived field is computed at most once per Comment.  A failure inside
the pipeline is logged and the escaped, unformatted text is served instead;
the only error that escapes is MissingPostIndexError.

All comments of a batch share one PostIndex.  Constructing a Comment with an
index registers it there, so build the whole batch before rendering any of it
if replies should resolve forward references.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from jinja2 import Environment, PackageLoader, select_autoescape

from fuuka.core.config import Settings, get_settings
from fuuka.core.geoip import country_name
from fuuka.core.security import SEE_IP, Viewer
from .autolink import autolink
from .bbcode import get_grammar, parse_bbcode
from .formatting import archive_markup, finalize, greentext, strip_legacy_wrappers
from .links import LinkBuilder, UriBuilder
from .media import Media
from .memo import UNSET, Memo
from .post_index import PostIndex, post_key, post_label
from .references import BoardDirectory, ReferenceContext, ReferenceResolver
from .sanitizer import escape_html, process, to_valid_utf8


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

class CommentError(Exception):
    pass


class MissingPostIndexError(CommentError):
    """A comment was rendered without the batch index it must resolve against."""


# -----------------------------------------------------------------------------

class Stage(enum.Enum):
    RAW = "raw"
    SANITIZED = "sanitized"
    REFERENCES_RESOLVED = "references_resolved"
    MARKUP_PARSED = "markup_parsed"
    AUTOLINK_APPLIED = "autolink_applied"
    CACHED = "cached"


POST_FIELDS: dict[str, Any] = {
    "doc_id": 0,
    "poster_ip": None,
    "num": 0,
    "subnum": 0,
    "thread_num": 0,
    "op": 0,
    "timestamp": 0,
    "timestamp_expired": 0,
    "capcode": "N",
    "email": None,
    "name": None,
    "trip": None,
    "title": None,
    "comment": None,
    "delpass": None,
    "poster_hash": None,
    "poster_country": None,
}

# Derived fields always present in API output
PROCESSED_FIELDS: tuple[str, ...] = (
    "title_processed",
    "name_processed",
    "email_processed",
    "trip_processed",
    "poster_hash_processed",
    "original_timestamp",
    "fourchan_date",
    "comment_sanitized",
    "comment_processed",
    "poster_country_name_processed",
)

_NEW_YORK = ZoneInfo("America/New_York")


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RenderConfig:
    """Everything a batch of comments needs to know about where it is shown."""
    board: str
    archive: bool = False
    hide_thumbnails: bool = False
    realtime: bool = False
    hash_only: bool = False
    controller_method: str = "thread"
    external_host: str = "boards.4chan.org"
    greentext_class: str = "greentext"
    strip_legacy_wrappers: bool = True
    adjust_archive_timezone: bool = True
    autolink_popup: bool = True
    moot_start_tag: str = ""
    moot_end_tag: str = ""
    links: LinkBuilder = field(default_factory=UriBuilder, compare=False)
    boards: Optional[BoardDirectory] = field(default=None, compare=False)

    @classmethod
    def for_board(
        cls,
        board: Any,
        settings: Optional[Settings] = None,
        boards: Optional[BoardDirectory] = None,
        **options: Any,
    ) -> "RenderConfig":
        s = settings or get_settings()
        return cls(
            board=board.shortname,
            archive=bool(getattr(board, "archive", False)),
            hide_thumbnails=bool(getattr(board, "hide_thumbnails", False)),
            external_host=s.external_host,
            greentext_class=s.greentext_class,
            strip_legacy_wrappers=s.strip_legacy_wrappers,
            adjust_archive_timezone=s.adjust_archive_timezone,
            autolink_popup=s.autolink_popup,
            moot_start_tag=s.moot_start_tag,
            moot_end_tag=s.moot_end_tag,
            links=UriBuilder(s.base_url),
            boards=boards,
            **options,
        )


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def archive_to_utc(timestamp: int) -> int:
    """Archive timestamps are New York wall-clock time stored as if UTC."""
    if not timestamp:
        return timestamp
    local = datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=_NEW_YORK)
    return int(local.astimezone(timezone.utc).timestamp())


def fourchan_date(timestamp: int) -> str:
    """``n/j/y(D)G:i`` — e.g. ``1/5/13(Sat)9:05``."""
    d = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return f"{d.month}/{d.day}/{d:%y}({d:%a}){d.hour}:{d:%M}"


@lru_cache(maxsize=1)
def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("fuuka", "templates"),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


# -----------------------------------------------------------------------------
# Comment
# -----------------------------------------------------------------------------

class Comment:

    def __init__(
        self,
        row: Mapping[str, Any],
        config: RenderConfig,
        index: Optional[PostIndex] = None,
    ):
        for name, default in POST_FIELDS.items():
            value = row.get(name)
            setattr(self, name, default if value is None else value)

        self.config = config
        self.index: Optional[PostIndex] = None
        self.stage = Stage.RAW
        self._memo = Memo()

        self.media = Media.from_row(row, config, bool(self.op))

        if config.archive and config.adjust_archive_timezone:
            self.timestamp = archive_to_utc(self.timestamp)

        self.poster_country_name = country_name(self.poster_country)

        if index is not None:
            self.bind(index)

    @classmethod
    def from_rows(cls, rows, config: RenderConfig, index: PostIndex, prefetch: bool = True) -> list["Comment"]:
        """Build a batch: register every post first, then (optionally) render."""
        comments = [cls(row, config, index) for row in rows]
        if prefetch:
            for comment in comments:
                comment.render()
        return comments

    def bind(self, index: PostIndex) -> None:
        self.index = index
        index.register(self.thread_num, self.num, self.subnum)

    def __repr__(self) -> str:
        return f"<Comment /{self.config.board}/{self.label} thread={self.thread_num}>"

    # ── identity ──────────────────────────────────────────────────────────

    @property
    def key(self) -> str:
        return post_key(self.num, self.subnum)

    @property
    def label(self) -> str:
        return post_label(self.num, self.subnum)

    @property
    def is_ghost(self) -> bool:
        return bool(self.subnum)

    # ── body ──────────────────────────────────────────────────────────────

    @property
    def comment_sanitized(self) -> str:
        return self._memo.get_or_compute("comment_sanitized", lambda: to_valid_utf8(self.comment))

    @property
    def comment_processed(self) -> str:
        return self.render()

    def render(self) -> str:
        if self.index is None:
            raise MissingPostIndexError(f"comment {self.key} has no post index to render against")

        cached = self._memo.get("comment_processed")
        if cached is not UNSET:
            return cached

        try:
            html = self._process_comment()
        except Exception:
            log.warning("/%s/%s: comment processing failed, serving plain text",
                        self.config.board, self.key, exc_info=True)
            html = finalize(escape_html(self.comment_sanitized))

        html = to_valid_utf8(html)
        self._memo.set("comment_processed", html)
        self.stage = Stage.CACHED
        return html

    def _process_comment(self) -> str:
        cfg = self.config
        assert self.index is not None

        comment = to_valid_utf8(self.comment)
        if cfg.strip_legacy_wrappers:
            comment = strip_legacy_wrappers(comment, self.capcode)
        comment = escape_html(comment)
        self.stage = Stage.SANITIZED

        resolver = ReferenceResolver(
            ReferenceContext(
                board=cfg.board,
                thread_num=int(self.thread_num),
                num=int(self.num),
                subnum=int(self.subnum),
                controller_method=cfg.controller_method,
                hash_only=cfg.hash_only,
                realtime=cfg.realtime,
            ),
            self.index,
            cfg.links,
            cfg.boards,
            cfg.external_host,
        )
        comment = resolver.link_internal(comment)
        comment = resolver.link_external(comment)
        self.stage = Stage.REFERENCES_RESOLVED

        comment = greentext(comment, cfg.greentext_class)

        special = cfg.archive and not self.subnum
        comment = parse_bbcode(comment, get_grammar(special, cfg.moot_start_tag, cfg.moot_end_tag))
        self.stage = Stage.MARKUP_PARSED

        comment = autolink(comment, popup=cfg.autolink_popup)
        self.stage = Stage.AUTOLINK_APPLIED

        if special:
            comment = archive_markup(comment)

        return finalize(comment)

    @property
    def backlinks(self) -> list[str]:
        if self.index is None:
            raise MissingPostIndexError(f"comment {self.key} has no post index")
        return self.index.get_backlinks_for(self.key)

    # ── display fields ────────────────────────────────────────────────────

    @property
    def title_processed(self) -> str:
        return self._memo.get_or_compute("title_processed", lambda: process(self.title))

    @property
    def name_processed(self) -> str:
        return self._memo.get_or_compute("name_processed", lambda: process(self.name))

    @property
    def email_processed(self) -> str:
        return self._memo.get_or_compute("email_processed", lambda: process(self.email))

    @property
    def trip_processed(self) -> str:
        return self._memo.get_or_compute("trip_processed", lambda: process(self.trip))

    @property
    def poster_hash_processed(self) -> str:
        return self._memo.get_or_compute("poster_hash_processed", lambda: process(self.poster_hash))

    @property
    def poster_country_name_processed(self) -> Optional[str]:
        def compute():
            if self.poster_country_name is None:
                return None
            return process(self.poster_country_name)
        return self._memo.get_or_compute("poster_country_name_processed", compute)

    @property
    def original_timestamp(self) -> int:
        return self.timestamp

    @property
    def fourchan_date(self) -> str:
        return self._memo.get_or_compute("fourchan_date", lambda: fourchan_date(self.timestamp))

    @property
    def formatted(self) -> str:
        """The post box fragment as the theme renders it."""
        def compute():
            template = _template_env().get_template("board_comment.html")
            return template.render(p=self, board=self.config.board)
        return self._memo.get_or_compute("formatted", compute)

    def processed_fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in PROCESSED_FIELDS}

    # ── redaction ─────────────────────────────────────────────────────────

    def redact(self, viewer: Viewer) -> None:
        """Drop what *viewer* may not see.  The deletion password never leaves."""
        if not viewer.has_access(SEE_IP):
            self.poster_ip = None
        self.delpass = None
        if self.media is not None:
            self.media.redact(viewer)

    # ── serialisation ─────────────────────────────────────────────────────

    def to_dict(self, formatted: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {name: getattr(self, name) for name in POST_FIELDS if name != "delpass"}
        data.update(self.processed_fields())
        data["poster_country_name"] = self.poster_country_name
        data["backlinks"] = self.backlinks
        data["media"] = self.media.to_dict() if self.media is not None else None
        if formatted:
            data["formatted"] = self.formatted
        return data


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RenderedPost:
    html: str
    backlinks: list[str]
    processed_fields: dict[str, Any]


def render(post: Comment | Mapping[str, Any], index: Optional[PostIndex], config: RenderConfig) -> RenderedPost:
    """Render one post against a batch index."""
    if index is None:
        raise MissingPostIndexError("render() needs a PostIndex; create one with new_batch_index()")

    if not isinstance(post, Comment):
        post = Comment(post, config, index)
    elif post.index is None:
        post.bind(index)
    elif post.index is not index:
        raise CommentError(f"comment {post.key} is bound to another batch index")

    html = post.render()
    return RenderedPost(html=html, backlinks=post.backlinks, processed_fields=post.processed_fields())


# -----------------------------------------------------------------------------
