from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class CreateShareRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionID")


class CreateShareResponse(BaseModel):
    id: str
    secret: str
    url: str


class SyncShareRequest(BaseModel):
    secret: str
    data: List[Any]


class SyncShareResponse(BaseModel):
    success: bool = True
    sequence: int


class ShareDataResponse(BaseModel):
    data: List[Any]


class ShareInfoResponse(BaseModel):
    id: str
    session_id: str
    created_at: datetime
    updated_at: datetime


class RemoveShareRequest(BaseModel):
    secret: str


class StatusResponse(BaseModel):
    success: bool
    message: str
