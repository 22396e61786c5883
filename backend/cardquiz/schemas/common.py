"""Shared / generic schemas."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Envelope for errors a client shows inline on a form (auth screens)."""

    success: bool = False
    error_code: str
    message: str


class SuccessResponse(BaseModel):
    """Acknowledgement for actions without a resource to return."""

    success: bool = True
    message: str = "ok"


class HealthRead(BaseModel):
    status: str
    service: str
    database: str
    active_attempts: int
