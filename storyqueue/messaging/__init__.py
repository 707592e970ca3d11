"""Queue store adapter and client"""

from .queue_client import QueueClient
from .redis_queue import RedisQueueStore, create_redis_client

__all__ = ['QueueClient', 'RedisQueueStore', 'create_redis_client']
