from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Wire models use camelCase keys, matching the browser client."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Turn(CamelModel):
    """One message of a transcript. Never mutated once appended."""
    role: Role
    content: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=utcnow)


class SessionSummary(CamelModel):
    """Entry of the session picker: a transcript with its creation time."""
    id: str
    session_id: str
    created_at: datetime
    messages: list[Turn] = Field(default_factory=list)


class ChatRequest(CamelModel):
    queries: Optional[str] = None
    session_id: Optional[str] = None


class ChatResponse(CamelModel):
    reply: str


class HistoryResponse(CamelModel):
    messages: list[Turn]


class SessionsResponse(CamelModel):
    sessions: list[SessionSummary]


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "Chat deleted successfully"
