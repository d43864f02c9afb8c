#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas for request validation and response serialisation.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


CAPCODES = ("N", "M", "A", "D")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ErrorResponse(BaseModel):
    error: str


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Render preview
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RenderRequest(BaseModel):
    board: str = Field(..., min_length=1, max_length=32)
    comment: str = Field(default="", max_length=100_000)
    thread_num: int = Field(default=0, ge=0)
    num: int = Field(default=0, ge=0)
    subnum: int = Field(default=0, ge=0)
    capcode: str = "N"

    @field_validator("capcode")
    @classmethod
    def capcode_known(cls, v: str) -> str:
        v = v.upper()
        if v not in CAPCODES:
            raise ValueError(f"capcode must be one of: {', '.join(CAPCODES)}")
        return v


# -----------------------------------------------------------------------------

class RenderResponse(BaseModel):
    board: str
    key: str
    comment_processed: str
    backlinks: list[str] = []


# -----------------------------------------------------------------------------
