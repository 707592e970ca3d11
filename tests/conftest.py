"""
Pytest Configuration and Fixtures

Shared fixtures and fake collaborators for all tests.
"""

import pytest
import fakeredis
from typing import Dict, Any, List

from storyqueue.messaging.queue_client import QueueClient
from storyqueue.messaging.redis_queue import RedisQueueStore
from storyqueue.storage.records import RedisRecordStore
from storyqueue.storage.entity_linker import EntityLinker


class FakeClock:
    """Manually advanced epoch clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeVideoGenerator:
    """
    Scripted stand-in for VeoVideoGenerator.

    submissions: model_id -> response dict returned by generate_video
    polls: operation name -> list of task_status values, one per query_task call
    """

    def __init__(self, submissions: Dict[str, Dict[str, Any]] = None, polls: Dict[str, List[str]] = None,
                 response: Dict[str, Any] = None, video_bytes: bytes = b"MP4DATA"):
        self.submissions = submissions or {}
        self.polls = polls or {}
        self.response = response if response is not None else {
            "generateVideoResponse": {"generatedSamples": [{"video": {"uri": "https://files.example/v.mp4"}}]}
        }
        self.video_bytes = video_bytes
        self.submit_calls = []
        self.query_calls = []
        self.download_calls = []

    def generate_video(self, prompt, model, parameters=None, image=None):
        self.submit_calls.append({"prompt": prompt, "model": model, "parameters": parameters, "image": image})
        if model in self.submissions:
            return self.submissions[model]
        return accepted_submission(f"operations/{model}-op")

    def query_task(self, operation_name):
        self.query_calls.append(operation_name)
        statuses = self.polls.get(operation_name, ["succeed"])
        index = min(len([c for c in self.query_calls if c == operation_name]) - 1, len(statuses) - 1)
        status = statuses[index]
        if status == "succeed":
            return {
                "code": 0,
                "data": {"task_id": operation_name, "task_status": "succeed", "task_result": {"response": self.response}},
                "message": "Success"
            }
        if status == "failed":
            return {"code": -1, "data": {"task_id": operation_name, "task_status": "failed"}, "message": "backend error"}
        return {"code": 0, "data": {"task_id": operation_name, "task_status": "processing"}, "message": "Processing"}

    def download_video(self, video_uri):
        self.download_calls.append(video_uri)
        return self.video_bytes


def accepted_submission(operation_name: str) -> Dict[str, Any]:
    return {
        "code": 0,
        "data": {"task_id": operation_name, "task_status": "submitted", "quota_exceeded": False},
        "message": "Success"
    }


def quota_submission() -> Dict[str, Any]:
    return {
        "code": -1,
        "data": {"task_id": None, "task_status": "failed", "quota_exceeded": True},
        "message": "Quota exceeded"
    }


class FakeImageGenerator:
    """Scripted stand-in for GeminiImageGenerator (responses keyed by model)"""

    def __init__(self, responses: Dict[str, Dict[str, Any]] = None, image_bytes: bytes = b"PNGDATA"):
        self.responses = responses or {}
        self.image_bytes = image_bytes
        self.calls = []

    def generate_image(self, prompt, model, reference=None):
        self.calls.append({"prompt": prompt, "model": model, "reference": reference})
        if model in self.responses:
            return self.responses[model]
        return {
            "code": 0,
            "data": {"image_bytes": self.image_bytes, "mime_type": "image/png", "quota_exceeded": False},
            "message": "Success"
        }


class FakePublisher:
    """Records publish calls; optionally fails"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def publish(self, owner_entity_key, media_kind, data, content_type):
        self.calls.append({
            "owner_entity_key": owner_entity_key,
            "media_kind": media_kind,
            "data": data,
            "content_type": content_type,
        })
        if self.fail:
            raise RuntimeError("upload failed")
        owner = owner_entity_key or "unlinked"
        return f"https://storage.example/{media_kind}/{owner}/{len(self.calls)}"


class FakeReferenceFetcher:
    def __init__(self, data: bytes = b"REFIMAGE", mime_type: str = "image/jpeg"):
        self.data = data
        self.mime_type = mime_type
        self.calls = []

    def __call__(self, url: str) -> Dict[str, Any]:
        self.calls.append(url)
        return {"data": self.data, "mime_type": self.mime_type}


class NoSleep:
    """Sleep replacement that only counts calls"""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture
def fake_redis():
    """Fresh in-memory Redis per test"""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue_store(fake_redis, clock) -> RedisQueueStore:
    return RedisQueueStore(fake_redis, clock=clock)


@pytest.fixture
def queue_client(queue_store) -> QueueClient:
    return QueueClient(queue_store)


@pytest.fixture
def record_store(fake_redis) -> RedisRecordStore:
    return RedisRecordStore(fake_redis)


@pytest.fixture
def linker(record_store) -> EntityLinker:
    return EntityLinker(record_store)


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def reference_fetcher() -> FakeReferenceFetcher:
    return FakeReferenceFetcher()


@pytest.fixture
def no_sleep() -> NoSleep:
    return NoSleep()


@pytest.fixture
def scene_job() -> Dict[str, Any]:
    """Image job for scene sc3 of storyboard sb1"""
    return {
        "media_kind": "image",
        "prompt": "A lighthouse at dusk, storm clouds rolling in",
        "storyboard_id": "sb1",
        "scene_id": "sc3",
    }


@pytest.fixture
def video_job() -> Dict[str, Any]:
    return {
        "media_kind": "video",
        "prompt": "Slow dolly toward the lighthouse as the beam sweeps",
        "owner_entity_key": "scene:sb1:sc3",
        "generation_params": {"aspect_ratio": "16:9", "duration_seconds": 8},
    }
