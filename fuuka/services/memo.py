#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Memo
====
Per-instance cache for derived comment fields.

UNSET marks a field that has not been computed yet.  It is distinct from every
real value, so "" and None are cached like anything else.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from typing import Any, Callable, TypeVar


# -----------------------------------------------------------------------------

T = TypeVar("T")


class _Unset(enum.Enum):
    UNSET = "unset"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.UNSET


class Memo:
    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get(self, name: str) -> Any:
        return self._values.get(name, UNSET)

    def get_or_compute(self, name: str, compute: Callable[[], T]) -> T:
        value = self._values.get(name, UNSET)
        if value is UNSET:
            value = compute()
            self._values[name] = value
        return value

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def is_set(self, name: str) -> bool:
        return name in self._values

    def clear(self, name: str | None = None) -> None:
        if name is None:
            self._values.clear()
        else:
            self._values.pop(name, None)


# -----------------------------------------------------------------------------
