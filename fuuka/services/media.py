#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Media attached to a post.

Only the metadata the comment engine and the API need lives here: display
escaping of the filename, the url-safe hash, and redaction of banned or hidden
media for viewers who may not see it.  Storage layout and thumbnails belong to
the media store.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import base64
import html
from typing import Any, Mapping, Optional

from fuuka.core.security import SEE_BANNED_MEDIA, SEE_HIDDEN_MEDIA, Viewer
from .memo import Memo
from .sanitizer import process


# -----------------------------------------------------------------------------

MEDIA_FIELDS: tuple[str, ...] = (
    "media_id", "spoiler", "preview_orig", "media", "preview_op", "preview_reply",
    "preview_w", "preview_h", "media_filename", "media_w", "media_h", "media_size",
    "media_hash", "media_orig", "exif", "total", "banned",
)

STATUS_NORMAL = "normal"
STATUS_BANNED = "banned"
STATUS_FORBIDDEN = "forbidden"

# What a viewer without access gets instead of the real row
_REDACTED: dict[str, Any] = {
    "media_id": 0,
    "spoiler": False,
    "preview_orig": None,
    "preview_w": 0,
    "preview_h": 0,
    "media_filename": None,
    "media_w": 0,
    "media_h": 0,
    "media_size": 0,
    "media_hash": None,
    "media_orig": None,
    "exif": None,
    "total": 0,
    "banned": False,
    "media": None,
    "preview_op": None,
    "preview_reply": None,
}


# -----------------------------------------------------------------------------

def urlsafe_b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii").replace("+", "-").replace("/", "_").replace("=", "")


def urlsafe_b64decode(value: str) -> bytes:
    value = value.replace("-", "+").replace("_", "/")
    return base64.b64decode(value + "=" * (-len(value) % 4))


# -----------------------------------------------------------------------------

class Media:

    def __init__(self, row: Mapping[str, Any], board: Any, op: bool = False):
        for name in MEDIA_FIELDS:
            setattr(self, name, row.get(name))
        self.board = board
        self.op = bool(op)
        self.redacted = False
        self._memo = Memo()

        # archive filenames were stored already encoded
        if getattr(board, "archive", False) and self.media_filename:
            self.media_filename = html.unescape(self.media_filename)

        if not self.preview_w or not self.preview_h:
            self.preview_w = 0
            self.preview_h = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any], board: Any, op: bool = False) -> Optional["Media"]:
        if not row.get("media_id"):
            return None
        return cls(row, board, op)

    # ── derived ───────────────────────────────────────────────────────────

    @property
    def safe_media_hash(self) -> Optional[str]:
        def compute():
            if not self.media_hash:
                return None
            try:
                return urlsafe_b64encode(urlsafe_b64decode(self.media_hash))
            except ValueError:
                return None
        return self._memo.get_or_compute("safe_media_hash", compute)

    @property
    def media_filename_processed(self) -> str:
        return self._memo.get_or_compute("media_filename_processed", lambda: process(self.media_filename))

    def status(self, viewer: Viewer) -> str:
        if self.banned and not viewer.has_access(SEE_BANNED_MEDIA):
            return STATUS_BANNED
        if getattr(self.board, "hide_thumbnails", False) and not viewer.has_access(SEE_HIDDEN_MEDIA):
            return STATUS_FORBIDDEN
        return STATUS_NORMAL

    # ── redaction ─────────────────────────────────────────────────────────

    def redact(self, viewer: Viewer) -> bool:
        """Blank the row if *viewer* may not see it.  Returns True when redacted."""
        if self.status(viewer) == STATUS_NORMAL:
            return False
        for name, value in _REDACTED.items():
            setattr(self, name, value)
        self._memo.clear()
        self.redacted = True
        return True

    def to_dict(self) -> dict[str, Any]:
        data = {name: getattr(self, name) for name in MEDIA_FIELDS}
        data["safe_media_hash"] = self.safe_media_hash
        data["media_filename_processed"] = self.media_filename_processed if self.media_filename else None
        return data


# -----------------------------------------------------------------------------
