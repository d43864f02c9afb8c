#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
ORM Models for Fuuka
====================

Tables
------
boards  — one row per archived board (shortname, archive flag, limits)
posts   — one row per post, media metadata inlined as the scraper joins it

Posts are identified by (board_id, num, subnum); subnum > 0 marks a ghost
post made on the archive after the thread died.  Timestamps are unix seconds.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    BigInteger, Boolean, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fuuka.core.database import Base
from fuuka.services.comment import POST_FIELDS
from fuuka.services.media import MEDIA_FIELDS


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# boards
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Board(Base):
    __tablename__ = "boards"

    id:               Mapped[int]  = mapped_column(Integer, primary_key=True)
    shortname:        Mapped[str]  = mapped_column(String(32), unique=True, nullable=False, index=True)
    name:             Mapped[str]  = mapped_column(String(128), nullable=False, default="")
    archive:          Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hide_thumbnails:  Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    disable_ghost:    Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    anonymous_default_name: Mapped[str] = mapped_column(String(64), nullable=False, default="Anonymous")
    max_posts_count:  Mapped[int]  = mapped_column(Integer, nullable=False, default=400)
    max_images_count: Mapped[int]  = mapped_column(Integer, nullable=False, default=250)

    posts: Mapped[list["Post"]] = relationship(back_populates="board", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Board /{self.shortname}/>"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# posts
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        UniqueConstraint("board_id", "num", "subnum", name="uq_post_board_num"),
        Index("ix_posts_board_thread", "board_id", "thread_num"),
    )

    doc_id:            Mapped[int]        = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id:          Mapped[int]        = mapped_column(ForeignKey("boards.id", ondelete="CASCADE"), nullable=False)
    num:               Mapped[int]        = mapped_column(BigInteger, nullable=False)
    subnum:            Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    thread_num:        Mapped[int]        = mapped_column(BigInteger, nullable=False)
    op:                Mapped[bool]       = mapped_column(Boolean, nullable=False, default=False)
    timestamp:         Mapped[int]        = mapped_column(BigInteger, nullable=False, default=0)
    timestamp_expired: Mapped[int]        = mapped_column(BigInteger, nullable=False, default=0)
    capcode:           Mapped[str]        = mapped_column(String(1), nullable=False, default="N")
    email:             Mapped[str | None] = mapped_column(String(100), nullable=True)
    name:              Mapped[str | None] = mapped_column(String(100), nullable=True)
    trip:              Mapped[str | None] = mapped_column(String(25), nullable=True)
    title:             Mapped[str | None] = mapped_column(String(100), nullable=True)
    comment:           Mapped[str | None] = mapped_column(Text, nullable=True)
    delpass:           Mapped[str | None] = mapped_column(String(255), nullable=True)
    poster_ip:         Mapped[str | None] = mapped_column(String(45), nullable=True)
    poster_hash:       Mapped[str | None] = mapped_column(String(8), nullable=True)
    poster_country:    Mapped[str | None] = mapped_column(String(2), nullable=True)

    # media, as joined from the images table by the scraper
    media_id:          Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    spoiler:           Mapped[bool]       = mapped_column(Boolean, nullable=False, default=False)
    banned:            Mapped[bool]       = mapped_column(Boolean, nullable=False, default=False)
    media:             Mapped[str | None] = mapped_column(String(191), nullable=True)
    media_orig:        Mapped[str | None] = mapped_column(String(50), nullable=True)
    media_filename:    Mapped[str | None] = mapped_column(Text, nullable=True)
    media_hash:        Mapped[str | None] = mapped_column(String(25), nullable=True)
    media_w:           Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    media_h:           Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    media_size:        Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    preview_orig:      Mapped[str | None] = mapped_column(String(20), nullable=True)
    preview_op:        Mapped[str | None] = mapped_column(String(20), nullable=True)
    preview_reply:     Mapped[str | None] = mapped_column(String(20), nullable=True)
    preview_w:         Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    preview_h:         Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    exif:              Mapped[str | None] = mapped_column(Text, nullable=True)
    total:             Mapped[int]        = mapped_column(Integer, nullable=False, default=0)

    board: Mapped["Board"] = relationship(back_populates="posts")

    def to_row(self) -> dict[str, Any]:
        """Plain mapping in the shape the comment engine consumes."""
        return {name: getattr(self, name) for name in (*POST_FIELDS, *MEDIA_FIELDS)}

    def __repr__(self) -> str:
        sub = f",{self.subnum}" if self.subnum else ""
        return f"<Post {self.num}{sub} thread={self.thread_num}>"


# ----------------------------------------------------------------------------
