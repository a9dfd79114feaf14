"""Shared response envelope."""

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """`{success, message}` envelope returned by every non-listing endpoint."""
    success: bool
    message: str
