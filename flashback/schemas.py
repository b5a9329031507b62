# flashback/schemas.py
from pydantic import BaseModel, ConfigDict
from typing import List, Optional


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender: str
    channel: str
    send_time: str
    body: str


class SyncResponse(BaseModel):
    status: str
    new_messages_found: int
    channels_synced: List[str]


class SearchResponse(BaseModel):
    channel: str
    query: str
    sender: Optional[str] = None
    results: List[Message]


class ReadinessResponse(BaseModel):
    ready: bool
    error: Optional[str] = None
