"""FastAPI application: job submission, worker invocation and queue inspection"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .api_types import (
    EnqueueResponse, BatchSummaryResponse, QueueCountResponse, PeekResponse, ArchiveResponse
)
from ..core.config import LOG_LEVEL, MEDIA_KINDS, get_queue_config, media_kind_for_queue
from ..messaging.queue_client import QueueClient
from ..messaging.redis_queue import RedisQueueStore, create_redis_client
from ..schemas.envelope import JobPayload
from ..workers.dispatch import trigger_worker

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan"""
    # Startup
    owns_redis = getattr(app.state, "redis", None) is None
    if owns_redis:
        app.state.redis = create_redis_client()

    yield

    # Shutdown
    if owns_redis and app.state.redis is not None:
        app.state.redis.close()
        app.state.redis = None


# Initialize FastAPI app
app = FastAPI(
    title="Storyboard Generation Queue",
    description="Asynchronous image/video generation jobs for storyboard entities",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_queue_client(request: Request) -> QueueClient:
    return QueueClient(RedisQueueStore(request.app.state.redis))


def get_processor_factory(request: Request) -> Callable:
    """Builds a JobProcessor for a media kind, sharing the app's Redis connection"""
    from ..storage.entity_linker import EntityLinker
    from ..storage.records import RedisRecordStore
    from ..workers.job_processor import JobProcessor

    redis_client = request.app.state.redis

    def factory(media_kind: str) -> JobProcessor:
        return JobProcessor(
            media_kind,
            queue_client=QueueClient(RedisQueueStore(redis_client)),
            linker=EntityLinker(RedisRecordStore(redis_client))
        )

    return factory


def _require_queue(queue_name: str) -> str:
    if media_kind_for_queue(queue_name) is None:
        raise HTTPException(status_code=404, detail=f"Unknown queue: {queue_name}")
    return queue_name


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "name": "Storyboard Generation Queue",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
def health(request: Request):
    """Health check endpoint"""
    try:
        request.app.state.redis.ping()
        redis_status = "connected"
    except Exception as e:
        redis_status = f"error: {str(e)}"

    return {
        "status": "healthy",
        "redis": redis_status,
        "timestamp": datetime.now().isoformat()
    }


@app.post("/jobs", response_model=EnqueueResponse)
def enqueue_job(
    job: JobPayload,
    background_tasks: BackgroundTasks,
    queue_client: QueueClient = Depends(get_queue_client)
):
    """Enqueue a generation job on its media kind's queue and nudge the worker"""
    queue_name = get_queue_config(job.media_kind)["queue_name"]
    message_id = queue_client.enqueue(queue_name, job)
    background_tasks.add_task(trigger_worker, job.media_kind)
    return EnqueueResponse(message_id=message_id, queue_name=queue_name, status="queued")


@app.post("/workers/{media_kind}/run", response_model=BatchSummaryResponse)
def run_worker(media_kind: str, processor_factory: Callable = Depends(get_processor_factory)):
    """Process one batch of the media kind's queue"""
    if media_kind not in MEDIA_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown media kind: {media_kind}")
    return processor_factory(media_kind).run()


@app.get("/queues/{queue_name}/count", response_model=QueueCountResponse)
def queue_count(queue_name: str, queue_client: QueueClient = Depends(get_queue_client)):
    _require_queue(queue_name)
    return QueueCountResponse(queue_name=queue_name, count=queue_client.count(queue_name))


@app.get("/queues/{queue_name}/peek", response_model=PeekResponse)
def peek_queue(
    queue_name: str,
    visibility_timeout: int = Query(0, ge=0),
    max_count: int = Query(10, ge=1, le=100),
    queue_client: QueueClient = Depends(get_queue_client)
):
    """Operator read; increments read counts like a worker read"""
    _require_queue(queue_name)
    messages = queue_client.peek(queue_name, visibility_timeout=visibility_timeout, max_count=max_count)
    return PeekResponse(queue_name=queue_name, messages=messages)


@app.post("/queues/{queue_name}/messages/{message_id}/archive", response_model=ArchiveResponse)
def archive_message(queue_name: str, message_id: int, queue_client: QueueClient = Depends(get_queue_client)):
    _require_queue(queue_name)
    if not queue_client.archive(queue_name, message_id):
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found in {queue_name}")
    logger.info(f"[API] Archived msg_id={message_id} from {queue_name}")
    return ArchiveResponse(queue_name=queue_name, message_id=message_id, archived=True)
