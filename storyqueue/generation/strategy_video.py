"""Submit-and-poll video generation strategy"""

import time
import base64
import logging
from typing import Dict, Any, Optional, Callable

from ..core.config import GOOGLE_VEO_CONFIG, QUEUE_CONFIG
from ..core.state import (
    GenerationAttempt, GenerationResult,
    STATUS_SUBMITTED, STATUS_POLLING, STATUS_DONE, STATUS_FAILED, STATUS_TIMED_OUT
)
from ..schemas.envelope import JobPayload
from .extractors import extract_video_uri
from .fallback import run_fallback_chain
from .poller import poll_operation
from .registry import apply_model_quirks
from .strategies import GenerationStrategy, utc_now_iso

logger = logging.getLogger(__name__)


def _pick(params: Dict[str, Any], *names):
    for name in names:
        if params.get(name) is not None:
            return params[name]
    return None


def build_video_parameters(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Request parameters from generation_params (snake_case or camelCase keys).

    Raises ValueError for values the backend is known to reject.
    """
    aspect_ratio = _pick(params, "aspect_ratio", "aspectRatio") or GOOGLE_VEO_CONFIG["default_aspect_ratio"]
    resolution = _pick(params, "resolution") or GOOGLE_VEO_CONFIG["default_resolution"]
    duration = _pick(params, "duration_seconds", "durationSeconds", "duration") or GOOGLE_VEO_CONFIG["default_duration"]

    try:
        duration = int(duration)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid duration: {duration}")

    if aspect_ratio not in GOOGLE_VEO_CONFIG["aspect_ratios"]:
        raise ValueError(f"Invalid aspect ratio: {aspect_ratio}. Must be one of {GOOGLE_VEO_CONFIG['aspect_ratios']}")
    if resolution not in GOOGLE_VEO_CONFIG["resolutions"]:
        raise ValueError(f"Invalid resolution: {resolution}. Must be one of {GOOGLE_VEO_CONFIG['resolutions']}")
    if duration not in GOOGLE_VEO_CONFIG["durations"]:
        raise ValueError(f"Invalid duration: {duration}. Must be one of {GOOGLE_VEO_CONFIG['durations']}")

    parameters = {
        "aspectRatio": aspect_ratio,
        "resolution": resolution,
        "durationSeconds": duration,
    }
    negative_prompt = _pick(params, "negative_prompt", "negativePrompt")
    if negative_prompt:
        parameters["negativePrompt"] = negative_prompt
    return parameters


class VideoStrategy(GenerationStrategy):
    """
    Per candidate: submitted -> polling -> done | failed | timed_out.

    Only submission failures (quota or otherwise) move on to the next model; once
    a model has accepted the request, its outcome is final for this delivery.
    """

    media_kind = "video"

    def __init__(self, generator=None, candidates=None, reference_fetcher=None,
                 sleep: Callable[[float], None] = time.sleep,
                 poll_interval: Optional[float] = None, max_poll_attempts: Optional[int] = None,
                 clock: Callable[[], float] = time.time, deadline_seconds: Optional[float] = None):
        super().__init__(generator=generator, candidates=candidates, reference_fetcher=reference_fetcher)
        self.sleep = sleep
        self.poll_interval = poll_interval if poll_interval is not None else GOOGLE_VEO_CONFIG["poll_interval"]
        self.max_poll_attempts = max_poll_attempts or GOOGLE_VEO_CONFIG["max_poll_attempts"]
        self.clock = clock
        # submissions and polling must end early enough to download and upload before redelivery
        if deadline_seconds is None:
            deadline_seconds = QUEUE_CONFIG["video"]["visibility_timeout"] - GOOGLE_VEO_CONFIG["finish_margin"]
        self.deadline_seconds = deadline_seconds

    def _create_generator(self):
        from .client_veo_rest import VeoVideoGenerator
        return VeoVideoGenerator()

    def _run_chain(self, job: JobPayload) -> GenerationResult:
        deadline = self.clock() + self.deadline_seconds
        # top-level camelCase fields from storyboard producers, overridden by generation_params
        params = {**(job.model_extra or {}), **job.generation_params}
        parameters = build_video_parameters(params)

        image = None
        if job.reference_asset_url:
            reference = self.reference_fetcher(job.reference_asset_url)
            image = {
                "bytesBase64Encoded": base64.b64encode(reference["data"]).decode("utf-8"),
                "mimeType": reference["mime_type"],
            }
            logger.info(f"[Video Strategy] Using reference image as first frame ({reference['mime_type']})")

        outputs = {}

        def attempt(model_id: str) -> GenerationAttempt:
            record: GenerationAttempt = {
                "model_id": model_id,
                "started_at": utc_now_iso(),
                "status": STATUS_SUBMITTED,
                "accepted": False,
                "quota_exceeded": False,
                "error": None,
            }
            submission = self.generator.generate_video(
                prompt=job.prompt,
                model=model_id,
                parameters=apply_model_quirks(model_id, parameters),
                image=image
            )
            data = submission.get("data") or {}
            if submission.get("code") != 0 or not data.get("task_id"):
                record["status"] = STATUS_FAILED
                record["quota_exceeded"] = bool(data.get("quota_exceeded"))
                record["error"] = submission.get("message")
                return record

            record["accepted"] = True
            record["operation_handle"] = data["task_id"]
            record["status"] = STATUS_POLLING

            polled = poll_operation(
                self.generator, data["task_id"],
                max_attempts=self.max_poll_attempts,
                interval=self.poll_interval,
                sleep=self.sleep,
                deadline=deadline,
                clock=self.clock
            )
            record["poll_attempts"] = polled["poll_attempts"]
            record["status"] = polled["status"]
            record["error"] = polled["error"]
            if polled["status"] != STATUS_DONE:
                return record

            video_uri = extract_video_uri(polled["response"])
            if not video_uri:
                logger.error(f"[Video Strategy] {model_id} finished without a recognizable video URI: {str(polled['response'])[:300]}")
                record["status"] = STATUS_FAILED
                record["error"] = "No video URI in operation response"
                return record

            try:
                outputs[model_id] = self.generator.download_video(video_uri)
            except Exception as e:
                logger.error(f"[Video Strategy] Download failed for {video_uri[:120]}: {str(e)}")
                record["status"] = STATUS_FAILED
                record["error"] = f"Download error: {str(e)}"
            return record

        chain = run_fallback_chain(self.candidates, attempt, label="Video Strategy", deadline=deadline, clock=self.clock)
        last = chain["last"] or {}

        if chain["deadline_reached"]:
            return self._failed_result(
                STATUS_TIMED_OUT, chain["attempts"],
                f"No model accepted within {self.deadline_seconds}s: {last.get('error')}"
            )
        if not chain["accepted"]:
            return self._failed_result(STATUS_FAILED, chain["attempts"], f"All video models failed: {last.get('error')}")

        model_used = chain["model_used"]
        if last.get("status") == STATUS_TIMED_OUT:
            logger.error(
                f"[Video Strategy] {model_used} timed out after {last.get('poll_attempts')} polls; "
                f"message will be redelivered after its visibility timeout"
            )
            return self._failed_result(STATUS_TIMED_OUT, chain["attempts"], last.get("error"), model_used)
        if last.get("status") != STATUS_DONE:
            return self._failed_result(STATUS_FAILED, chain["attempts"], last.get("error"), model_used)

        video_bytes = outputs[model_used]
        logger.info(f"[Video Strategy] Generated with {model_used} ({len(video_bytes)} bytes)")
        return self._done_result(video_bytes, "video/mp4", model_used, chain["attempts"])
