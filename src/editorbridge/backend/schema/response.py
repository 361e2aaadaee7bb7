"""
Response envelope shared by every REST endpoint.

    {"success": true,  "message": null, "data": {...}}
    {"success": false, "message": "...", "data": null, "error": {"code": "NOT_FOUND"}}

Business errors are reported inside the envelope with HTTP 200.
"""

from typing import TypeVar, Generic, Optional
from pydantic import BaseModel, Field


T = TypeVar('T')


class BaseResponse(BaseModel):
    success: bool = Field(..., description="Whether the command succeeded")
    message: Optional[str] = Field(None, description="Human-readable detail")


class SuccessResponse(BaseResponse, Generic[T]):
    """Envelope for a successful command.

    Example:
        SuccessResponse[StartLspOut] for a started language server
    """

    success: bool = Field(True, description="Always true")
    data: T = Field(..., description="Command result")


class ErrorResponse(BaseResponse):
    """Envelope for a failed command; ``error.code`` is a BridgeException code."""

    success: bool = Field(False, description="Always false")
    data: None = Field(None, description="Always null")
    error: Optional[dict] = Field(
        None,
        description="Error code and optional validation details",
        examples=[
            {"code": "NOT_FOUND"},
            {"code": "SPAWN_ERROR"},
            {"code": "VALIDATION_ERROR", "details": [{"loc": ["body", "root_path"], "msg": "Field required"}]},
        ]
    )
