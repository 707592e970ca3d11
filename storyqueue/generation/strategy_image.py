"""Synchronous image generation strategy"""

import logging

from ..core.state import GenerationAttempt, GenerationResult, STATUS_DONE, STATUS_FAILED
from ..schemas.envelope import JobPayload
from .fallback import run_fallback_chain
from .strategies import GenerationStrategy, utc_now_iso

logger = logging.getLogger(__name__)


class ImageStrategy(GenerationStrategy):
    """Prompt (+ inline reference in edit mode) -> one image, first candidate that returns one wins"""

    media_kind = "image"

    def _create_generator(self):
        from .client_gemini_image import GeminiImageGenerator
        return GeminiImageGenerator()

    def _run_chain(self, job: JobPayload) -> GenerationResult:
        reference = None
        if job.edit_mode:
            reference = self.reference_fetcher(job.reference_asset_url)

        outputs = {}

        def attempt(model_id: str) -> GenerationAttempt:
            started_at = utc_now_iso()
            response = self.generator.generate_image(prompt=job.prompt, model=model_id, reference=reference)
            data = response.get("data") or {}
            if response.get("code") == 0 and data.get("image_bytes"):
                outputs[model_id] = (data["image_bytes"], data.get("mime_type") or "image/png")
                return {
                    "model_id": model_id,
                    "started_at": started_at,
                    "status": STATUS_DONE,
                    "accepted": True,
                    "quota_exceeded": False,
                    "error": None,
                }
            return {
                "model_id": model_id,
                "started_at": started_at,
                "status": STATUS_FAILED,
                "accepted": False,
                "quota_exceeded": bool(data.get("quota_exceeded")),
                "error": response.get("message"),
            }

        chain = run_fallback_chain(self.candidates, attempt, label="Image Strategy")
        if not chain["accepted"]:
            last_error = chain["last"].get("error") if chain["last"] else None
            return self._failed_result(STATUS_FAILED, chain["attempts"], f"All image models failed: {last_error}")

        image_bytes, mime_type = outputs[chain["model_used"]]
        logger.info(f"[Image Strategy] Generated with {chain['model_used']} ({len(image_bytes)} bytes)")
        return self._done_result(image_bytes, mime_type, chain["model_used"], chain["attempts"])
