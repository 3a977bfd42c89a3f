"""
Error envelope documented on every endpoint's 4xx/5xx responses.
"""
from typing import Any, Optional

from pydantic import BaseModel, Field


class FieldError(BaseModel):
    """One entry of a VALIDATION_ERROR's `details.errors` list."""
    field: str = Field(examples=["streak_minimum_count"])
    message: str
    type: str


class ErrorResponse(BaseModel):
    code: str = Field(
        description="Machine-readable error code.",
        examples=["TASK_NOT_FOUND"],
    )
    message: str
    details: Optional[dict[str, Any]] = None
