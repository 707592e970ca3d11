"""Message envelope and job payload models"""

from datetime import datetime
from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

ENVELOPE_VERSION = 1


class JobPayload(BaseModel):
    """
    Unit of work enqueued by a producer.

    Frozen once built: attempt counters and the model that succeeded are never
    written back into the payload.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    media_kind: Literal["image", "video"]
    prompt: str
    owner_entity_key: Optional[str] = None
    reference_asset_url: Optional[str] = None
    edit_mode: bool = False
    generation_params: Dict[str, Any] = Field(default_factory=dict)

    # Composite key parts sent by storyboard producers (used when owner_entity_key is absent)
    storyboard_id: Optional[str] = None
    scene_id: Optional[str] = None
    character_id: Optional[str] = None

    version: int = ENVELOPE_VERSION

    def to_message(self) -> Dict[str, Any]:
        """JSON-ready body for the queue store"""
        return self.model_dump(mode="json", exclude_none=True)


class Envelope(BaseModel):
    """A queued message plus the metadata assigned by the queue store"""

    message_id: int
    read_count: int
    enqueued_at: datetime
    visible_at: datetime
    payload: Dict[str, Any]

    def parse_job(self) -> JobPayload:
        """Validate the raw payload (raises pydantic.ValidationError when malformed)"""
        return JobPayload.model_validate(self.payload)
