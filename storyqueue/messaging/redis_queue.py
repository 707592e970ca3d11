"""Redis-backed queue store with visibility timeouts

Layout per queue (prefix defaults to "pgq"):
    {prefix}:{queue}:seq        message id counter
    {prefix}:{queue}:vt         sorted set, message id -> visible-at epoch
    {prefix}:{queue}:msg:{id}   hash with message JSON, read_ct, enqueued_at
    {prefix}:{queue}:archive    hash, message id -> archived record JSON
"""

import json
import time
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Callable

import redis

from ..core.config import REDIS_URL, REDIS_MAX_CONNECTIONS, QUEUE_KEY_PREFIX
from ..schemas.envelope import Envelope

logger = logging.getLogger(__name__)


def create_redis_client(redis_url: str = None) -> redis.Redis:
    """Redis client with a pooled connection and decoded responses"""
    pool = redis.ConnectionPool.from_url(
        redis_url or REDIS_URL,
        max_connections=REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_keepalive=True
    )
    return redis.Redis(connection_pool=pool)


def _to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(float(epoch), tz=timezone.utc)


class RedisQueueStore:
    """
    At-least-once FIFO queue store.

    A read claims messages by pushing their visible-at deadline forward; nothing is
    deleted until the consumer acknowledges. Claims run inside a WATCH/MULTI
    transaction on the visibility set, so concurrent readers never receive the
    same un-expired message.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: str = QUEUE_KEY_PREFIX,
        clock: Callable[[], float] = time.time
    ):
        self.redis = redis_client if redis_client is not None else create_redis_client()
        self.key_prefix = key_prefix
        self._clock = clock

    def _key(self, queue_name: str, suffix: str) -> str:
        return f"{self.key_prefix}:{queue_name}:{suffix}"

    def _msg_key(self, queue_name: str, message_id) -> str:
        return self._key(queue_name, f"msg:{int(message_id)}")

    @staticmethod
    def _member(message_id) -> str:
        # zero padded so ties on the visibility score keep id order
        return f"{int(message_id):020d}"

    def send(self, queue_name: str, payload: Dict[str, Any]) -> int:
        """Append a message; it is visible immediately"""
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        message_id = int(self.redis.incr(self._key(queue_name, "seq")))
        now = self._clock()

        pipe = self.redis.pipeline()
        pipe.hset(self._msg_key(queue_name, message_id), mapping={
            "message": body,
            "read_ct": 0,
            "enqueued_at": now,
        })
        pipe.zadd(self._key(queue_name, "vt"), {self._member(message_id): now})
        pipe.execute()

        logger.info(f"[RedisQueue] send ok queue={queue_name} msg_id={message_id} size={len(body)}B")
        return message_id

    def read(self, queue_name: str, visibility_timeout: int, max_count: int) -> List[Envelope]:
        """Claim up to max_count visible messages and hide them for visibility_timeout seconds"""
        if max_count <= 0:
            return []
        vt_key = self._key(queue_name, "vt")

        def _claim(pipe) -> List[tuple]:
            now = self._clock()
            message_ids = pipe.zrangebyscore(vt_key, "-inf", now, start=0, num=max_count)
            visible_at = now + visibility_timeout
            pipe.multi()
            for message_id in message_ids:
                pipe.zadd(vt_key, {message_id: visible_at})
                pipe.hincrby(self._msg_key(queue_name, message_id), "read_ct", 1)
            return [(message_id, visible_at) for message_id in message_ids]

        claimed = self.redis.transaction(_claim, vt_key, value_from_callable=True)
        if not claimed:
            return []

        pipe = self.redis.pipeline(transaction=False)
        for message_id, _ in claimed:
            pipe.hgetall(self._msg_key(queue_name, message_id))
        records = pipe.execute()

        envelopes = []
        for (message_id, visible_at), record in zip(claimed, records):
            if not record:
                logger.warning(f"[RedisQueue] Claimed msg_id={message_id} on {queue_name} has no body, skipping")
                continue
            envelopes.append(Envelope(
                message_id=int(message_id),
                read_count=int(record.get("read_ct", 0)),
                enqueued_at=_to_datetime(record["enqueued_at"]),
                visible_at=_to_datetime(visible_at),
                payload=json.loads(record["message"]),
            ))
        return envelopes

    def delete(self, queue_name: str, message_id: int) -> bool:
        """Remove a message permanently; False when it no longer exists"""
        pipe = self.redis.pipeline()
        pipe.zrem(self._key(queue_name, "vt"), self._member(message_id))
        pipe.delete(self._msg_key(queue_name, message_id))
        removed, _ = pipe.execute()
        return bool(removed)

    def archive(self, queue_name: str, message_id: int) -> bool:
        """Move a message to the archive hash; False when it no longer exists"""
        record = self.redis.hgetall(self._msg_key(queue_name, message_id))
        if not record:
            return False

        archived = {
            "message_id": int(message_id),
            "read_ct": int(record.get("read_ct", 0)),
            "enqueued_at": float(record.get("enqueued_at", 0)),
            "archived_at": self._clock(),
            "message": json.loads(record["message"]),
        }
        pipe = self.redis.pipeline()
        pipe.hset(self._key(queue_name, "archive"), str(message_id), json.dumps(archived))
        pipe.zrem(self._key(queue_name, "vt"), self._member(message_id))
        pipe.delete(self._msg_key(queue_name, message_id))
        pipe.execute()
        logger.info(f"[RedisQueue] Archived msg_id={message_id} from {queue_name}")
        return True

    def count(self, queue_name: str) -> int:
        """Queue length, visible and in-flight messages together"""
        return int(self.redis.zcard(self._key(queue_name, "vt")))

    def list_archive(self, queue_name: str) -> List[Dict[str, Any]]:
        """Archived records for operator tooling, oldest id first"""
        raw = self.redis.hgetall(self._key(queue_name, "archive"))
        records = [json.loads(value) for value in raw.values()]
        return sorted(records, key=lambda r: r["message_id"])
