from __future__ import annotations

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    # entries are validated one by one by the conversation normalizer
    messages: List[Any] = Field(...)


class ChatMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    elapsed_ms: int = Field(..., alias="elapsedMs")
    used_sql: bool = Field(..., alias="usedSql")


class ChatResponse(BaseModel):
    message: str
    meta: ChatMeta


class ErrorResponse(BaseModel):
    error: str
    details: str
    hint: Optional[str] = None
    feedback: Optional[str] = None
