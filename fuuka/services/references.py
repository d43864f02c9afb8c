#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Reference resolver
==================
Rewrites reference tokens in an escaped post body into anchors.

  >>123   >>123,4            — intra-board, resolved against the PostIndex
  >>>/a/  >>>/a/123  >>>/a/123,4/   — inter-board, resolved against the
                                      board directory

The intra-board pass must run first: the inter-board form starts with three
``&gt;`` and only the two-``&gt;`` pattern followed by digits is consumed by
it, so ``>>>/a/`` survives for the second pass.

Every intra-board match also records a backlink on the target post.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from .links import LinkBuilder
from .post_index import PostIndex, post_key, post_label


# -----------------------------------------------------------------------------

INTERNAL_RE = re.compile(r"(&gt;&gt;(\d+(?:,\d+)?))", re.IGNORECASE)
EXTERNAL_RE = re.compile(r"&gt;&gt;&gt;(/(\w+)/([\w-]+(?:,\d+)?)?(/?))", re.IGNORECASE)


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------

class BoardLike(Protocol):
    shortname: str


class BoardDirectory(Protocol):
    def get_by_shortname(self, shortname: str) -> Optional[BoardLike]:
        ...


class StaticBoardDirectory:
    """Board directory backed by an in-memory list, loaded once per request."""

    def __init__(self, boards=()):
        self._boards = {b.shortname: b for b in boards}

    def get_by_shortname(self, shortname: str) -> Optional[BoardLike]:
        return self._boards.get(shortname)


# -----------------------------------------------------------------------------
# Tokens
# -----------------------------------------------------------------------------

class TokenKind(enum.Enum):
    INTRA = "intra"
    INTER = "inter"


@dataclass(frozen=True)
class ReferenceToken:
    kind: TokenKind
    text: str
    label: str = ""                # "123" / "123,4", or the inter-board query, as written
    board: Optional[str] = None
    link: str = ""                 # inter-board text after the ">>>"

    @classmethod
    def intra(cls, m: re.Match) -> "ReferenceToken":
        return cls(TokenKind.INTRA, m.group(0), m.group(2))

    @classmethod
    def inter(cls, m: re.Match) -> "ReferenceToken":
        return cls(TokenKind.INTER, m.group(0), m.group(3) or "", board=m.group(2), link=m.group(1))

    @property
    def key(self) -> str:
        return self.label.replace(",", "_")


# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------

class Branch(enum.Enum):
    THREAD = "thread"        # target is a thread of this batch (its OP)
    INDEXED = "indexed"      # target is a registered post of some thread
    REALTIME = "realtime"    # optimistic link into the current thread
    REDIRECT = "redirect"    # generic "find this post" link


@dataclass(frozen=True)
class Resolution:
    branch: Branch
    thread_num: Optional[int] = None


def resolve(label: str, index: PostIndex, current_thread: int, realtime: bool = False) -> Resolution:
    if index.has_thread(label):
        return Resolution(Branch.THREAD, int(label))

    thread_num = index.thread_of(label)
    if thread_num is not None:
        return Resolution(Branch.INDEXED, thread_num)

    if realtime:
        return Resolution(Branch.REALTIME, current_thread)

    return Resolution(Branch.REDIRECT)


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ReferenceContext:
    """The post whose body is being rewritten and how its links should look."""
    board: str
    thread_num: int
    num: int
    subnum: int = 0
    controller_method: str = "thread"
    hash_only: bool = False
    realtime: bool = False

    @property
    def key(self) -> str:
        return post_key(self.num, self.subnum)

    @property
    def label(self) -> str:
        return post_label(self.num, self.subnum)


def _highlight_attrs(css_class: str, board: str, post: str) -> str:
    return (
        f'class="{css_class}" data-function="highlight" data-backlink="true" '
        f'data-board="{board}" data-post="{post}"'
    )


class ReferenceResolver:

    def __init__(
        self,
        ctx: ReferenceContext,
        index: PostIndex,
        links: LinkBuilder,
        boards: Optional[BoardDirectory] = None,
        external_host: str = "boards.4chan.org",
    ):
        self.ctx = ctx
        self.index = index
        self.links = links
        self.boards = boards
        self.external_host = external_host

    # ── intra-board ───────────────────────────────────────────────────────

    def link_internal(self, escaped: str) -> str:
        return INTERNAL_RE.sub(self._internal, escaped)

    def _internal(self, m: re.Match) -> str:
        ctx = self.ctx
        token = ReferenceToken.intra(m)
        label, key = token.label, token.key

        own_thread_url = self.links.create(ctx.board, ctx.controller_method, ctx.thread_num)
        self.index.record_backlink(
            key,
            ctx.key,
            f'<a href="{own_thread_url}#{ctx.key}" {_highlight_attrs("backlink", ctx.board, ctx.key)}>'
            f'&gt;&gt;{ctx.label}</a>',
        )

        res = resolve(label, self.index, ctx.thread_num, ctx.realtime)
        return self._anchor(res, label, key)

    def _anchor(self, res: Resolution, label: str, key: str) -> str:
        ctx = self.ctx
        css_class = "backlink op" if res.branch is Branch.THREAD else "backlink"

        if res.branch is Branch.REDIRECT:
            href = self.links.create(ctx.board, "post", key)
        elif ctx.hash_only and res.branch is not Branch.REALTIME:
            href = f"#{key}"
        else:
            href = f"{self.links.create(ctx.board, ctx.controller_method, res.thread_num)}#{key}"

        return f'<a href="{href}" {_highlight_attrs(css_class, ctx.board, key)}>&gt;&gt;{label}</a>'

    # ── inter-board ───────────────────────────────────────────────────────

    def link_external(self, escaped: str) -> str:
        return EXTERNAL_RE.sub(self._external, escaped)

    def _external(self, m: re.Match) -> str:
        token = ReferenceToken.inter(m)
        link, shortname, query = token.link, token.board, token.label
        board = self.boards.get_by_shortname(shortname) if self.boards is not None else None

        if board is None:
            if query:
                href = f"//{self.external_host}/{shortname}/res/{query}"
            else:
                href = f"//{self.external_host}/{shortname}/"
            return f'<a href="{href}">&gt;&gt;&gt;{link}</a>'

        if query:
            href = self.links.create(board.shortname, "post", query)
            return (
                f'<a href="{href}" {_highlight_attrs("backlink", board.shortname, query)}>'
                f"&gt;&gt;&gt;{link}</a>"
            )

        return f'<a href="{self.links.create(board.shortname)}">&gt;&gt;&gt;{link}</a>'


# -----------------------------------------------------------------------------
