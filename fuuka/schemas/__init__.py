from fuuka.schemas.schemas import (
    ErrorResponse,
    RenderRequest, RenderResponse,
    CAPCODES,
)

__all__ = [
    "ErrorResponse",
    "RenderRequest", "RenderResponse",
    "CAPCODES",
]
