"""Type definitions for API request/response validation"""

from pydantic import BaseModel, Field
from typing import Optional, List

from ..schemas.envelope import Envelope


class EnqueueResponse(BaseModel):
    """Response type for job submission"""
    message_id: int
    queue_name: str
    status: str = "queued"


class JobResultItem(BaseModel):
    """Outcome of one message in a worker run"""
    success: bool
    message_id: int
    read_count: int
    status: str
    owner_entity_key: Optional[str] = None
    asset_url: Optional[str] = None
    model_used: Optional[str] = None
    linked: Optional[bool] = None
    error: Optional[str] = None


class BatchSummaryResponse(BaseModel):
    """Response type for a worker run"""
    queue: str
    processed: int
    succeeded: int
    failed: int
    results: List[JobResultItem] = Field(default_factory=list)


class QueueCountResponse(BaseModel):
    queue_name: str
    count: int


class PeekResponse(BaseModel):
    """Messages returned by an operator read"""
    queue_name: str
    messages: List[Envelope]


class ArchiveResponse(BaseModel):
    queue_name: str
    message_id: int
    archived: bool

