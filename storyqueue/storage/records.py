"""Redis-backed entity record store (JSON documents under kv:{key})"""

import json
import logging
from typing import Dict, Any, Optional

import redis

from ..core.config import RECORD_KEY_PREFIX

logger = logging.getLogger(__name__)


class RedisRecordStore:
    """get/update over JSON entity records; records are owned and created elsewhere"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, key_prefix: str = RECORD_KEY_PREFIX):
        if redis_client is None:
            from ..messaging.redis_queue import create_redis_client
            redis_client = create_redis_client()
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, record: Dict[str, Any]):
        """Write a whole record (producer side and tests)"""
        self.redis.set(self._key(key), json.dumps(record))

    def update(self, key: str, patch: Dict[str, Any]) -> bool:
        """
        Merge-patch an existing record atomically.

        Fields not in the patch are preserved. Returns False when the record does not exist.
        """
        redis_key = self._key(key)

        def _merge(pipe) -> bool:
            raw = pipe.get(redis_key)
            if raw is None:
                return False
            record = json.loads(raw)
            record.update(patch)
            pipe.multi()
            pipe.set(redis_key, json.dumps(record))
            return True

        return self.redis.transaction(_merge, redis_key, value_from_callable=True)
