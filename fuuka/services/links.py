#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Application URL building for boards, threads and posts.

    create("a")                     → {base}/a/
    create("a", "thread", 123)      → {base}/a/thread/123/
    create("a", "last/50", 123)     → {base}/a/last/50/123/
    create("a", "post", "123_4")    → {base}/a/post/123_4/
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional, Protocol


# -----------------------------------------------------------------------------

class LinkBuilder(Protocol):
    def create(self, board: str, route: Optional[str] = None, target: int | str | None = None) -> str:
        ...


class UriBuilder:

    def __init__(self, base_url: str = ""):
        self.base_url = base_url.rstrip("/")

    def create(self, board: str, route: Optional[str] = None, target: int | str | None = None) -> str:
        segments = [board]
        if route:
            segments.append(route.strip("/"))
        if target is not None and target != "":
            segments.append(str(target))
        return f"{self.base_url}/{'/'.join(segments)}/"


# -----------------------------------------------------------------------------
