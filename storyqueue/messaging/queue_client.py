"""Producer/consumer wrapper over the queue store primitives"""

import json
import logging
from typing import Dict, Any, List, Union, Optional

from ..schemas.envelope import Envelope, JobPayload

logger = logging.getLogger(__name__)


class QueueClient:
    """
    Thin, stateless wrapper around a queue store exposing
    send / read / delete / archive / count.

    Only the structural shape of a payload is checked here; semantic validation
    belongs to the job processor.
    """

    def __init__(self, store=None):
        if store is None:
            from .redis_queue import RedisQueueStore
            store = RedisQueueStore()
        self.store = store

    def enqueue(self, queue_name: str, payload: Union[JobPayload, Dict[str, Any]]) -> int:
        """Send a job payload and return the queue-assigned message id"""
        if isinstance(payload, JobPayload):
            message = payload.to_message()
        elif isinstance(payload, dict):
            message = payload
        else:
            raise ValueError(f"Payload must be a mapping, got {type(payload).__name__}")

        try:
            json.dumps(message)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Payload is not JSON serializable: {e}")

        message_id = self.store.send(queue_name, message)
        logger.info(f"[QueueClient] Enqueued msg_id={message_id} on {queue_name}")
        return message_id

    def read_batch(self, queue_name: str, visibility_timeout: int, max_count: int) -> List[Envelope]:
        """
        Claim a batch. Messages stay in the queue, hidden for visibility_timeout
        seconds; callers MUST acknowledge on success or they resurface.
        """
        envelopes = self.store.read(queue_name, visibility_timeout, max_count)
        logger.info(f"[QueueClient] Read {len(envelopes)} message(s) from {queue_name} (vt={visibility_timeout}s, qty={max_count})")
        return envelopes

    def acknowledge(self, queue_name: str, message_id: int) -> bool:
        """Delete a processed message"""
        deleted = self.store.delete(queue_name, message_id)
        if not deleted:
            logger.warning(f"[QueueClient] msg_id={message_id} was already gone from {queue_name}")
        return deleted

    def archive(self, queue_name: str, message_id: int) -> bool:
        return self.store.archive(queue_name, message_id)

    def count(self, queue_name: str) -> int:
        return self.store.count(queue_name)

    def peek(self, queue_name: str, visibility_timeout: int = 0, max_count: int = 10) -> List[Envelope]:
        """
        Operator read. Same semantics as read_batch (read_count increments); the
        default visibility timeout of 0 leaves messages visible to workers.
        """
        return self.store.read(queue_name, visibility_timeout, max_count)

    def list_archive(self, queue_name: str) -> Optional[List[Dict[str, Any]]]:
        """Archived records, when the store keeps them"""
        if not hasattr(self.store, "list_archive"):
            return None
        return self.store.list_archive(queue_name)
