#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Post index
==========
Batch-scoped bookkeeping shared by every comment rendered together (usually
one thread view):

  threads    thread label ("123") to post labels ("123" / "123,4"), in
             insertion order
  backlinks  target key to {referencing key: anchor html}

Thread and post lookups compare labels as exact strings, so ">>0123" never
matches thread 123.

One index per batch.  It is mutated sequentially while the batch renders and
must not be shared between concurrent batches.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional


# -----------------------------------------------------------------------------

def post_key(num: int | str, subnum: int | str = 0) -> str:
    """Fragment / backlink key: ``num`` or ``num_subnum``."""
    return f"{num}_{subnum}" if int(subnum or 0) else str(num)


def post_label(num: int | str, subnum: int | str = 0) -> str:
    """Human form used in link text: ``num`` or ``num,subnum``."""
    return f"{num},{subnum}" if int(subnum or 0) else str(num)


def _key_order(key: str) -> tuple[int, int]:
    num, _, subnum = key.partition("_")
    return int(num), int(subnum or 0)


# -----------------------------------------------------------------------------

class PostIndex:

    def __init__(self) -> None:
        self._threads: dict[str, dict[str, None]] = {}
        self._backlinks: dict[str, dict[str, str]] = {}

    # ── thread registry ───────────────────────────────────────────────────

    def register(self, thread_num: int, num: int, subnum: int = 0) -> None:
        posts = self._threads.setdefault(str(int(thread_num)), {})
        posts[post_label(num, subnum)] = None

    def has_thread(self, thread_num: int | str) -> bool:
        return str(thread_num) in self._threads

    def thread_of(self, label: str) -> Optional[int]:
        """First registered thread containing *label*, in registration order."""
        for thread_label, posts in self._threads.items():
            if label in posts:
                return int(thread_label)
        return None

    @property
    def post_to_thread(self) -> dict[str, int]:
        mapping: dict[str, int] = {}
        for thread_label, posts in self._threads.items():
            for label in posts:
                mapping.setdefault(label, int(thread_label))
        return mapping

    # ── backlinks ─────────────────────────────────────────────────────────

    def record_backlink(self, target_key: str, source_key: str, anchor: str) -> None:
        self._backlinks.setdefault(target_key, {})[source_key] = anchor

    def get_backlinks_for(self, key: str) -> list[str]:
        links = self._backlinks.get(key)
        if not links:
            return []
        return [links[k] for k in sorted(links, key=_key_order)]

    def backlink_count(self, key: str) -> int:
        return len(self._backlinks.get(key, ()))

    def __repr__(self) -> str:
        return f"<PostIndex threads={len(self._threads)} targets={len(self._backlinks)}>"


# -----------------------------------------------------------------------------

def new_batch_index() -> PostIndex:
    return PostIndex()


# -----------------------------------------------------------------------------
