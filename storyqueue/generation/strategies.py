"""Generation strategy interface and dispatch by media kind"""

from datetime import datetime, timezone
from typing import List, Optional, Callable, Dict, Any

from ..core.state import GenerationResult, STATUS_DONE
from ..schemas.envelope import JobPayload
from .registry import get_candidate_models


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GenerationStrategy:
    """
    One media kind's way of turning a job into asset bytes.

    Subclasses implement _run_chain(); validation and result shaping are shared.
    Strategies never raise for backend failures, only for permanent request
    errors (ValueError).
    """

    media_kind: str = ""

    def __init__(self, generator=None, candidates: Optional[List[str]] = None,
                 reference_fetcher: Optional[Callable[[str], Dict[str, Any]]] = None):
        self._generator = generator
        self.candidates = list(candidates) if candidates is not None else get_candidate_models(self.media_kind)
        if reference_fetcher is None:
            from ..storage.gcs_utils import fetch_reference_asset
            reference_fetcher = fetch_reference_asset
        self.reference_fetcher = reference_fetcher

    @property
    def generator(self):
        if self._generator is None:
            self._generator = self._create_generator()
        return self._generator

    def _create_generator(self):
        raise NotImplementedError

    def validate(self, job: JobPayload):
        """Permanent request errors; retrying these never helps"""
        if job.media_kind != self.media_kind:
            raise ValueError(f"{self.media_kind} strategy cannot run a {job.media_kind} job")
        if not job.prompt or not job.prompt.strip():
            raise ValueError("Job prompt is empty")
        if job.edit_mode and not job.reference_asset_url:
            raise ValueError("edit_mode requires reference_asset_url")
        if not self.candidates:
            raise ValueError(f"No candidate models configured for {self.media_kind}")

    def generate(self, job: JobPayload) -> GenerationResult:
        self.validate(job)
        return self._run_chain(job)

    def _run_chain(self, job: JobPayload) -> GenerationResult:
        raise NotImplementedError

    @staticmethod
    def _failed_result(status: str, attempts: list, error: str, model_used: Optional[str] = None) -> GenerationResult:
        return {
            "success": False,
            "status": status,
            "model_used": model_used,
            "attempts": attempts,
            "error": error,
        }

    @staticmethod
    def _done_result(data: bytes, content_type: str, model_used: str, attempts: list) -> GenerationResult:
        return {
            "success": True,
            "status": STATUS_DONE,
            "data": data,
            "content_type": content_type,
            "model_used": model_used,
            "attempts": attempts,
            "error": None,
        }


def get_strategy(media_kind: str, **kwargs) -> GenerationStrategy:
    """Strategy instance for a media kind"""
    from .strategy_image import ImageStrategy
    from .strategy_video import VideoStrategy

    strategies = {
        "image": ImageStrategy,
        "video": VideoStrategy,
    }
    if media_kind not in strategies:
        raise ValueError(f"Invalid media_kind: {media_kind}. Must be one of {list(strategies)}")
    return strategies[media_kind](**kwargs)

