#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Chan API — thread and post JSON for archive clients.

GET  /api/chan/thread?board=a&num=123[&latest_doc_id=&last_limit=&ghosts=&theme=]
GET  /api/chan/thread_status?board=a&num=123
GET  /api/chan/index?board=a[&page=&order=by_post|by_thread|ghost&theme=]
GET  /api/chan/threads?board=a[&page=&theme=]
GET  /api/chan/post?board=a&num=123[,4][&theme=]
POST /api/chan/render   — live preview of an unsaved comment body

Errors come back as ``{"error": "..."}``.  A missing board or a bad number is
a 404; a well-formed request for a thread or post that does not exist is a
200 with the error body, as archive clients expect.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fuuka.core.database import get_db
from fuuka.core.security import Viewer, get_viewer
from fuuka.schemas import RenderRequest, RenderResponse
from fuuka.services import board as board_svc


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/chan", tags=["chan"])


# -----------------------------------------------------------------------------

def _error(message: str, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _board_or_none(db: AsyncSession, shortname: Optional[str]):
    if not shortname:
        return None
    return await board_svc.get_board(db, shortname)


# -----------------------------------------------------------------------------

@router.get("/thread")
async def get_thread(
    board:         Optional[str] = Query(default=None),
    num:           Optional[str] = Query(default=None),
    latest_doc_id: Optional[str] = Query(default=None),
    last_limit:    Optional[str] = Query(default=None),
    ghosts:        bool = Query(default=False),
    theme:         Optional[str] = Query(default=None),
    db:            AsyncSession = Depends(get_db),
    viewer:        Viewer = Depends(get_viewer),
) -> Any:
    """Return a whole thread, its last posts, its ghost posts, or the posts after a doc_id."""
    radix = await _board_or_none(db, board)
    if radix is None:
        return _error("No board selected.", status.HTTP_404_NOT_FOUND)

    if num is None:
        return _error('The "num" parameter is missing.', status.HTTP_404_NOT_FOUND)
    if not board_svc.is_natural(num):
        return _error('The value for "num" is invalid.', status.HTTP_404_NOT_FOUND)

    try:
        view = await board_svc.get_thread(
            db, radix, num,
            viewer=viewer,
            latest_doc_id=latest_doc_id,
            last_limit=last_limit,
            ghosts_only=ghosts,
        )
    except board_svc.MalformedInputError as exc:
        return _error(str(exc), status.HTTP_404_NOT_FOUND)
    except board_svc.ThreadNotFoundError:
        return _error("Thread not found.")

    if view is None:
        return {}
    return view.to_dict(formatted=bool(theme))


# -----------------------------------------------------------------------------

@router.get("/thread_status")
async def get_thread_status(
    board: Optional[str] = Query(default=None),
    num:   Optional[str] = Query(default=None),
    db:    AsyncSession = Depends(get_db),
) -> Any:
    """Whether a thread is closed, dead, or refuses new images."""
    radix = await _board_or_none(db, board)
    if radix is None:
        return _error("No board selected.", status.HTTP_404_NOT_FOUND)

    if num is None:
        return _error('The "num" parameter is missing.', status.HTTP_404_NOT_FOUND)
    if not board_svc.is_natural(num):
        return _error('The value for "num" is invalid.', status.HTTP_404_NOT_FOUND)

    try:
        view = await board_svc.get_thread(db, radix, num)
        return board_svc.thread_status(view, radix)
    except board_svc.MalformedInputError as exc:
        return _error(str(exc), status.HTTP_404_NOT_FOUND)
    except board_svc.ThreadNotFoundError:
        return _error("Thread not found.")


# -----------------------------------------------------------------------------

@router.get("/index")
async def get_index(
    board:  Optional[str] = Query(default=None),
    page:   Optional[str] = Query(default=None),
    order:  str = Query(default="by_post"),
    theme:  Optional[str] = Query(default=None),
    db:     AsyncSession = Depends(get_db),
    viewer: Viewer = Depends(get_viewer),
) -> Any:
    """One board index page: each thread's OP and its latest replies."""
    radix = await _board_or_none(db, board)
    if radix is None:
        return _error("No board selected.", status.HTTP_404_NOT_FOUND)

    try:
        index = await board_svc.get_latest(db, radix, page=page, order=order, viewer=viewer)
    except board_svc.MalformedInputError as exc:
        return _error(str(exc), status.HTTP_404_NOT_FOUND)

    return index.to_dict(formatted=bool(theme))


@router.get("/threads")
async def get_threads(
    board:  Optional[str] = Query(default=None),
    page:   Optional[str] = Query(default=None),
    theme:  Optional[str] = Query(default=None),
    db:     AsyncSession = Depends(get_db),
    viewer: Viewer = Depends(get_viewer),
) -> Any:
    """Opening posts only, newest thread first."""
    radix = await _board_or_none(db, board)
    if radix is None:
        return _error("No board selected.", status.HTTP_404_NOT_FOUND)

    try:
        ops = await board_svc.get_threads(db, radix, page=page, viewer=viewer)
    except board_svc.MalformedInputError as exc:
        return _error(str(exc), status.HTTP_404_NOT_FOUND)

    return {str(op.thread_num): {"op": op.to_dict(formatted=bool(theme))} for op in ops}


# -----------------------------------------------------------------------------

@router.get("/post")
async def get_post(
    board:  Optional[str] = Query(default=None),
    num:    Optional[str] = Query(default=None),
    theme:  Optional[str] = Query(default=None),
    db:     AsyncSession = Depends(get_db),
    viewer: Viewer = Depends(get_viewer),
) -> Any:
    """Return a single post; ``num`` may carry a ghost sub-number."""
    radix = await _board_or_none(db, board)
    if radix is None:
        return _error("No board selected.", status.HTTP_404_NOT_FOUND)

    if num is None:
        return _error('The "num" parameter is missing.', status.HTTP_404_NOT_FOUND)
    if not board_svc.is_valid_post_number(num):
        return _error('The value for "num" is invalid.', status.HTTP_404_NOT_FOUND)

    try:
        comment = await board_svc.get_post(db, radix, num, viewer=viewer)
    except board_svc.PostNotFoundError:
        return _error("Post not found.")
    except board_svc.BoardError as exc:
        log.warning("/%s/ post %s: %s", radix.shortname, num, exc)
        return _error(str(exc), status.HTTP_404_NOT_FOUND)

    return comment.to_dict(formatted=bool(theme))


# -----------------------------------------------------------------------------

@router.post("/render", response_model=RenderResponse)
async def render_preview(
    body: RenderRequest,
    db:   AsyncSession = Depends(get_db),
):
    """Render an unsaved comment the way it would appear on *board*."""
    radix = await board_svc.get_board(db, body.board)
    if radix is None:
        radix = board_svc.BoardConfig(shortname=body.board)

    comment = board_svc.preview(
        radix, body.comment,
        thread_num=body.thread_num,
        num=body.num,
        subnum=body.subnum,
        capcode=body.capcode,
    )
    return RenderResponse(
        board=radix.shortname,
        key=comment.key,
        comment_processed=comment.comment_processed,
        backlinks=comment.backlinks,
    )


# -----------------------------------------------------------------------------
