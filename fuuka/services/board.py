#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Board service
=============
Fetches threads and single posts for a board and turns them into rendered
Comment batches.

Thread fetch types
------------------
thread       — every post of the thread, num/subnum ascending
last_x       — the OP plus the last *last_limit* posts
from_doc_id  — posts newer than *latest_doc_id* (realtime polling)
ghosts       — only ghost posts (subnum > 0)

Index pages
-----------
get_latest   — 20 threads per page, each with its OP and last 5 replies,
               ordered by bump time (by_post), thread number (by_thread) or
               latest ghost reply (ghost)
get_threads  — opening posts only, newest first

One PostIndex is created per call, so every comment returned by a call shares
it and backlinks cover the whole batch.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fuuka.core.config import Settings, get_settings
from fuuka.core.security import Viewer
from fuuka.models import Board, Post
from .comment import Comment, RenderConfig
from .post_index import new_batch_index
from .references import StaticBoardDirectory


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

class BoardError(Exception):
    pass


class MalformedInputError(BoardError):
    pass


class MissingOptionsError(BoardError):
    pass


class ThreadNotFoundError(BoardError):
    pass


class PostNotFoundError(BoardError):
    pass


# -----------------------------------------------------------------------------
# Post numbers
# -----------------------------------------------------------------------------

_NATURAL_RE = re.compile(r"[0-9]+")
_POST_NUMBER_RE = re.compile(r"[0-9]+[,_][0-9]+")

# Threads without a bump for this long are dead
THREAD_DEAD_AFTER = 432000


def is_natural(value: Any) -> bool:
    return value is not None and bool(_NATURAL_RE.fullmatch(str(value)))


def is_valid_post_number(value: Any) -> bool:
    return is_natural(value) or bool(_POST_NUMBER_RE.fullmatch(str(value)))


def split_post_number(value: Any) -> tuple[int, int]:
    """``"123"`` → (123, 0);  ``"123,4"`` / ``"123_4"`` → (123, 4)."""
    if not is_valid_post_number(value):
        raise MalformedInputError(f"Invalid post number: {value!r}")
    num, _, subnum = str(value).replace(",", "_").partition("_")
    return int(num), int(subnum or 0)


# -----------------------------------------------------------------------------
# Boards
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BoardConfig:
    """Board settings that are not backed by a row (previews, tests)."""
    shortname: str
    name: str = ""
    archive: bool = False
    hide_thumbnails: bool = False
    disable_ghost: bool = False
    anonymous_default_name: str = "Anonymous"
    max_posts_count: int = 400
    max_images_count: int = 250


async def get_board(db: AsyncSession, shortname: str) -> Optional[Board]:
    result = await db.execute(select(Board).where(Board.shortname == shortname))
    return result.scalar_one_or_none()


async def list_boards(db: AsyncSession) -> list[Board]:
    result = await db.execute(select(Board).order_by(Board.shortname))
    return list(result.scalars().all())


async def _render_config(
    db: AsyncSession,
    board: Board,
    settings: Optional[Settings],
    **options: Any,
) -> RenderConfig:
    directory = StaticBoardDirectory(await list_boards(db))
    return RenderConfig.for_board(board, settings or get_settings(), boards=directory, **options)


# -----------------------------------------------------------------------------
# Threads
# -----------------------------------------------------------------------------

@dataclass
class ThreadView:
    thread_num: int
    op: Optional[Comment]
    posts: dict[str, Comment]
    comments: list[Comment]

    def to_dict(self, formatted: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.op is not None:
            data["op"] = self.op.to_dict(formatted)
        if self.posts:
            data["posts"] = {key: c.to_dict(formatted) for key, c in self.posts.items()}
        return {str(self.thread_num): data}


def _ordered(query):
    return query.order_by(Post.num.asc(), Post.subnum.asc())


async def _fetch_thread_rows(
    db: AsyncSession,
    board: Board,
    num: int,
    fetch_type: str,
    latest_doc_id: Optional[int],
    last_limit: Optional[int],
) -> Sequence[Post]:
    base = select(Post).where(Post.board_id == board.id)

    if fetch_type == "from_doc_id":
        query = _ordered(base.where(Post.thread_num == num, Post.doc_id > latest_doc_id))
    elif fetch_type == "ghosts":
        query = _ordered(base.where(Post.thread_num == num, Post.subnum != 0))
    elif fetch_type == "last_x":
        op = (await db.execute(base.where(Post.num == num, Post.subnum == 0).limit(1))).scalars().all()
        tail = (await db.execute(
            base.where(Post.thread_num == num)
                .order_by(Post.num.desc(), Post.subnum.desc())
                .limit(last_limit)
        )).scalars().all()
        unique = {p.doc_id: p for p in (*op, *tail)}
        return sorted(unique.values(), key=lambda p: (p.num, p.subnum))
    elif fetch_type == "thread":
        query = _ordered(base.where(Post.thread_num == num))
    else:
        raise MissingOptionsError(f"Unknown thread fetch type: {fetch_type!r}")

    return (await db.execute(query)).scalars().all()


async def get_thread(
    db: AsyncSession,
    board: Board,
    num: Any,
    *,
    viewer: Optional[Viewer] = None,
    latest_doc_id: Any = None,
    last_limit: Any = None,
    ghosts_only: bool = False,
    settings: Optional[Settings] = None,
) -> Optional[ThreadView]:
    """
    Render a thread.  Returns None when polling with *latest_doc_id* finds
    nothing new; raises ThreadNotFoundError when the thread does not exist.
    """
    if not is_natural(num) or int(num) < 1:
        raise MalformedInputError("The thread number is invalid.")
    num = int(num)

    controller_method = "thread"
    realtime = False
    if latest_doc_id is not None:
        if not is_natural(latest_doc_id):
            raise MalformedInputError("The value for 'latest_doc_id' is malformed.")
        fetch_type = "from_doc_id"
        realtime = True
        if is_natural(last_limit):
            controller_method = f"last/{last_limit}"
    elif ghosts_only:
        fetch_type = "ghosts"
    elif last_limit is not None:
        if not is_natural(last_limit) or int(last_limit) < 1:
            raise MalformedInputError("The value for 'last_limit' is malformed.")
        last_limit = min(int(last_limit), (settings or get_settings()).last_limit_max)
        fetch_type = "last_x"
        controller_method = f"last/{last_limit}"
    else:
        fetch_type = "thread"

    rows = await _fetch_thread_rows(
        db, board, num, fetch_type,
        int(latest_doc_id) if latest_doc_id is not None else None,
        int(last_limit) if fetch_type == "last_x" else None,
    )

    if not rows:
        if fetch_type == "from_doc_id":
            return None
        raise ThreadNotFoundError("There's no such a thread.")

    config = await _render_config(
        db, board, settings,
        realtime=realtime,
        hash_only=True,
        controller_method=controller_method,
    )
    comments = Comment.from_rows([p.to_row() for p in rows], config, new_batch_index())

    viewer = viewer or Viewer.anonymous()
    op: Optional[Comment] = None
    posts: dict[str, Comment] = {}
    for comment in comments:
        comment.redact(viewer)
        if comment.op:
            op = comment
        else:
            posts[comment.key] = comment

    return ThreadView(thread_num=num, op=op, posts=posts, comments=comments)


def thread_status(view: ThreadView, board: Board, now: Optional[float] = None) -> dict[str, bool]:
    """Whether the thread is closed, dead, or refuses new images."""
    if view.op is None:
        raise ThreadNotFoundError("The thread you were looking for can't be found.")

    replies = images = 0
    ghost_present = False
    last_bump = 0
    for c in view.comments:
        if not c.op:
            replies += 1
            if not c.subnum and c.media is not None:
                images += 1
        if c.subnum:
            ghost_present = True
        elif last_bump < c.timestamp:
            last_bump = c.timestamp

    status = {
        "closed": False,
        "dead": bool(board.archive),
        "disable_image_upload": bool(board.archive),
    }

    now = time.time() if now is None else now
    if now - last_bump > THREAD_DEAD_AFTER or ghost_present:
        status["dead"] = status["disable_image_upload"] = True

    if replies >= board.max_posts_count:
        status["dead"] = status["disable_image_upload"] = True
    elif images >= board.max_images_count:
        status["disable_image_upload"] = True

    if board.disable_ghost and status["dead"]:
        status["closed"] = True

    return status


# -----------------------------------------------------------------------------
# Index pages
# -----------------------------------------------------------------------------

LATEST_ORDERS = ("by_post", "by_thread", "ghost")
THREADS_PER_PAGE = 20
REPLIES_PER_THREAD = 5


@dataclass
class IndexThread:
    thread_num: int
    op: Optional[Comment]
    posts: list[Comment]
    omitted: int = 0
    images_omitted: int = 0

    def to_dict(self, formatted: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"omitted": self.omitted, "images_omitted": self.images_omitted}
        if self.op is not None:
            data["op"] = self.op.to_dict(formatted)
        if self.posts:
            data["posts"] = [c.to_dict(formatted) for c in self.posts]
        return data


@dataclass
class IndexPage:
    page: int
    order: str
    threads: list[IndexThread]
    comments: list[Comment]

    def to_dict(self, formatted: bool = False) -> dict[str, Any]:
        return {str(t.thread_num): t.to_dict(formatted) for t in self.threads}


def _page_number(page: Any) -> int:
    if page is None:
        return 1
    if not is_natural(page) or int(page) < 1:
        raise MalformedInputError("The value for 'page' is malformed.")
    return int(page)


def _latest_threads_query(board: Board, order: str, page: int, per_page: int):
    bump = func.max(case((Post.subnum == 0, Post.timestamp)))
    ghost_bump = func.max(case((Post.subnum != 0, Post.timestamp)))
    query = (
        select(
            Post.thread_num,
            func.count(Post.doc_id).label("nposts"),
            func.count(case((and_(~Post.op, Post.media_id != 0), 1))).label("nimages"),
        )
        .where(Post.board_id == board.id)
        .group_by(Post.thread_num)
    )

    if order == "by_post":
        query = query.order_by(bump.desc(), Post.thread_num.desc())
    elif order == "by_thread":
        query = query.order_by(Post.thread_num.desc())
    else:
        query = query.having(ghost_bump.is_not(None)).order_by(ghost_bump.desc(), Post.thread_num.desc())

    return query.limit(per_page).offset((page - 1) * per_page)


async def get_latest(
    db: AsyncSession,
    board: Board,
    *,
    page: Any = None,
    order: str = "by_post",
    viewer: Optional[Viewer] = None,
    per_page: int = THREADS_PER_PAGE,
    per_thread: int = REPLIES_PER_THREAD,
    settings: Optional[Settings] = None,
) -> IndexPage:
    """
    Render one board index page: each thread's OP plus its last *per_thread*
    replies.  Every thread on the page is rendered in a single batch, so a
    reply that quotes a post shown under another thread links straight to it.
    """
    page = _page_number(page)
    if order not in LATEST_ORDERS:
        raise MalformedInputError(f"Unknown index order: {order!r}")
    summaries = (await db.execute(_latest_threads_query(board, order, page, per_page))).all()
    if not summaries:
        return IndexPage(page=page, order=order, threads=[], comments=[])

    rows: list[dict[str, Any]] = []
    for summary in summaries:
        shown = (await db.execute(
            select(Post)
            .where(Post.board_id == board.id, Post.thread_num == summary.thread_num)
            .order_by(Post.op.desc(), Post.num.desc(), Post.subnum.desc())
            .limit(per_thread + 1)
        )).scalars().all()
        rows.extend(p.to_row() for p in sorted(shown, key=lambda p: (not p.op, p.num, p.subnum)))

    config = await _render_config(db, board, settings, controller_method="thread")
    comments = Comment.from_rows(rows, config, new_batch_index())

    viewer = viewer or Viewer.anonymous()
    threads = {
        s.thread_num: IndexThread(
            thread_num=s.thread_num,
            op=None,
            posts=[],
            omitted=max(0, s.nposts - (per_thread + 1)),
            images_omitted=s.nimages,
        )
        for s in summaries
    }
    for comment in comments:
        thread = threads[int(comment.thread_num)]
        if comment.op:
            thread.op = comment
        else:
            thread.posts.append(comment)
            if comment.media is not None:
                thread.images_omitted -= 1
        comment.redact(viewer)

    return IndexPage(page=page, order=order, threads=list(threads.values()), comments=comments)


async def get_threads(
    db: AsyncSession,
    board: Board,
    *,
    page: Any = None,
    viewer: Optional[Viewer] = None,
    per_page: int = THREADS_PER_PAGE,
    settings: Optional[Settings] = None,
) -> list[Comment]:
    """Opening posts only, newest thread first."""
    page = _page_number(page)
    ops = (await db.execute(
        select(Post)
        .where(Post.board_id == board.id, Post.op.is_(True))
        .order_by(Post.timestamp.desc(), Post.num.desc())
        .limit(per_page)
        .offset((page - 1) * per_page)
    )).scalars().all()

    config = await _render_config(db, board, settings, controller_method="thread")
    comments = Comment.from_rows([p.to_row() for p in ops], config, new_batch_index())
    viewer = viewer or Viewer.anonymous()
    for comment in comments:
        comment.redact(viewer)
    return comments


# -----------------------------------------------------------------------------
# Single posts
# -----------------------------------------------------------------------------

async def get_post(
    db: AsyncSession,
    board: Board,
    num: Any = None,
    *,
    doc_id: Any = None,
    viewer: Optional[Viewer] = None,
    settings: Optional[Settings] = None,
) -> Comment:
    query = select(Post).where(Post.board_id == board.id)
    if num is not None:
        n, sub = split_post_number(num)
        query = query.where(Post.num == n, Post.subnum == sub)
    elif doc_id is not None:
        if not is_natural(doc_id):
            raise MalformedInputError("The value for 'doc_id' is malformed.")
        query = query.where(Post.doc_id == int(doc_id))
    else:
        raise MissingOptionsError("No posts found with the submitted options.")

    row = (await db.execute(query)).scalars().first()
    if row is None:
        raise PostNotFoundError("Post not found.")

    config = await _render_config(db, board, settings)
    comment = Comment(row.to_row(), config, new_batch_index())
    comment.render()
    comment.redact(viewer or Viewer.anonymous())
    return comment


# -----------------------------------------------------------------------------

def preview(
    board: Any,
    body: str,
    *,
    thread_num: int = 0,
    num: int = 0,
    subnum: int = 0,
    capcode: str = "N",
    settings: Optional[Settings] = None,
) -> Comment:
    """Render a body that is not stored anywhere (live editor preview)."""
    config = RenderConfig.for_board(board, settings or get_settings())
    row = {
        "thread_num": thread_num,
        "num": num,
        "subnum": subnum,
        "capcode": capcode,
        "comment": body,
    }
    comment = Comment(row, config, new_batch_index())
    comment.render()
    return comment


__all__ = [
    "BoardError", "MalformedInputError", "MissingOptionsError",
    "ThreadNotFoundError", "PostNotFoundError",
    "BoardConfig", "is_natural", "is_valid_post_number", "split_post_number",
    "get_board", "list_boards", "get_thread", "thread_status", "get_post",
    "get_latest", "get_threads", "preview", "ThreadView", "IndexThread", "IndexPage",
    "LATEST_ORDERS",
]


# -----------------------------------------------------------------------------
