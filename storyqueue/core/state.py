"""In-memory state definitions for the generation pipeline

Nothing in here is written back to the queue: attempts and results live only
for the duration of one worker invocation.
"""

from typing import List, Dict, Any, Optional, TypedDict

# Generation attempt statuses
STATUS_SUBMITTED = "submitted"
STATUS_POLLING = "polling"
STATUS_DONE = "done"
STATUS_FAILED = "failed"
STATUS_TIMED_OUT = "timed_out"

# Job outcome reported by the worker for a dead-lettered message
STATUS_ARCHIVED = "archived"


class GenerationAttempt(TypedDict, total=False):
    model_id: str
    started_at: str  # ISO timestamp
    operation_handle: Optional[str]  # long-running operation name (video only)
    status: str  # submitted | polling | done | failed | timed_out
    poll_attempts: int
    accepted: bool  # the model took the request (fallback chain stops here)
    quota_exceeded: bool
    error: Optional[str]


class GenerationResult(TypedDict, total=False):
    success: bool
    status: str  # done | failed | timed_out
    data: bytes
    content_type: str
    model_used: Optional[str]
    attempts: List[GenerationAttempt]
    error: Optional[str]


class JobResult(TypedDict, total=False):
    success: bool
    message_id: int
    read_count: int
    status: str
    owner_entity_key: Optional[str]
    asset_url: Optional[str]
    model_used: Optional[str]
    linked: bool
    error: Optional[str]


class BatchSummary(TypedDict):
    queue: str
    processed: int
    succeeded: int
    failed: int
    results: List[Dict[str, Any]]
