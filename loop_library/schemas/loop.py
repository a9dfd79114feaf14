"""Loop-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoopRead(BaseModel):
    """Published loop as returned by the public listing."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    author: str
    files: list[str]
    key: str
    tempo: int
    type: str
    timesig: str
    name: str
    instrument: str
    added: datetime


class LoopPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int
    page: int
    total_loops: int = Field(alias="totalLoops")
    loops: list[LoopRead]
