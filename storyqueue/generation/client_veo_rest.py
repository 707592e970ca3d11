"""
Google Veo video generation over the Gemini API long-running operation surface
"""

import logging
from typing import Dict, Any, Optional

import requests

from ..core.config import GOOGLE_API_KEY, GEMINI_API_BASE, GOOGLE_VEO_CONFIG

logger = logging.getLogger(__name__)


class VeoVideoGenerator:
    """Google Veo video generation via predictLongRunning + operation polling"""

    def __init__(self, api_key: str = None, api_base: str = None, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else GOOGLE_API_KEY
        self.api_base = (api_base or GEMINI_API_BASE).rstrip("/")
        self.request_timeout = GOOGLE_VEO_CONFIG["request_timeout"]
        self.download_timeout = GOOGLE_VEO_CONFIG["download_timeout"]
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Lazy session initialization"""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def generate_video(
        self,
        prompt: str,
        model: str,
        parameters: Optional[Dict[str, Any]] = None,
        image: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Submit a video generation task

        Args:
            prompt: Video generation prompt
            model: Veo model id
            parameters: Request parameters (aspectRatio, resolution, durationSeconds, ...)
            image: Optional first frame as {"bytesBase64Encoded", "mimeType"}

        Returns:
            Dict with code (0=success), data (task_id, task_status, quota_exceeded), and message
        """
        instance = {"prompt": prompt}
        if image:
            instance["image"] = image

        body = {"instances": [instance]}
        if parameters:
            body["parameters"] = parameters

        url = f"{self.api_base}/models/{model}:predictLongRunning"
        try:
            logger.info(f"[GoogleVeo] Submitting video generation task")
            logger.info(f"[GoogleVeo] Model: {model}, Parameters: {parameters}, Start frame: {bool(image)}")
            logger.info(f"[GoogleVeo] Prompt: {prompt[:200]}...")

            response = self.session.post(url, headers=self._headers(), json=body, timeout=self.request_timeout)

            if response.status_code == 429 or "RESOURCE_EXHAUSTED" in response.text:
                logger.warning(f"[GoogleVeo] Quota exceeded for {model} (HTTP {response.status_code})")
                return {
                    "code": -1,
                    "data": {"task_id": None, "task_status": "failed", "quota_exceeded": True},
                    "message": f"Quota exceeded: {response.text[:500]}"
                }

            if not response.ok:
                logger.error(f"[GoogleVeo] Submission rejected by {model}: HTTP {response.status_code}")
                return {
                    "code": -1,
                    "data": {"task_id": None, "task_status": "failed", "quota_exceeded": False},
                    "message": f"HTTP {response.status_code}: {response.text[:500]}"
                }

            operation_name = response.json().get("name")
            if not operation_name:
                return {
                    "code": -1,
                    "data": {"task_id": None, "task_status": "failed", "quota_exceeded": False},
                    "message": "No operation name in response"
                }

            logger.info(f"[GoogleVeo] Task submitted successfully: {operation_name}")
            return {
                "code": 0,
                "data": {
                    "task_id": operation_name,
                    "task_status": "submitted",
                    "quota_exceeded": False
                },
                "message": "Success"
            }

        except Exception as e:
            logger.error(f"[GoogleVeo] Error submitting task: {str(e)}")
            return {
                "code": -1,
                "data": {"task_id": None, "task_status": "failed", "quota_exceeded": False},
                "message": f"Google Veo error: {str(e)}"
            }

    def query_task(self, operation_name: str) -> Dict[str, Any]:
        """
        Query task status using operation name

        Returns:
            Dict with code, data (task_id, task_status, task_result), and message.
            task_status is one of processing | succeed | failed; task_result carries
            the raw operation response on success.
        """
        try:
            response = self.session.get(
                f"{self.api_base}/{operation_name}",
                headers=self._headers(),
                timeout=self.request_timeout
            )
            response.raise_for_status()
            operation = response.json()

            if not operation.get("done"):
                logger.info(f"[GoogleVeo] Task still processing: {operation_name}")
                return {
                    "code": 0,
                    "data": {"task_id": operation_name, "task_status": "processing"},
                    "message": "Processing"
                }

            if operation.get("error"):
                error = operation["error"]
                error_msg = error.get("message") if isinstance(error, dict) else str(error)
                logger.error(f"[GoogleVeo] Task failed: {error_msg}")
                return {
                    "code": -1,
                    "data": {"task_id": operation_name, "task_status": "failed"},
                    "message": error_msg or "Unknown error"
                }

            logger.info(f"[GoogleVeo] Task completed: {operation_name}")
            return {
                "code": 0,
                "data": {
                    "task_id": operation_name,
                    "task_status": "succeed",
                    "task_result": {"response": operation.get("response") or {}}
                },
                "message": "Success"
            }

        except Exception as e:
            logger.error(f"[GoogleVeo] Error querying task {operation_name}: {str(e)}")
            return {
                "code": -1,
                "data": {"task_id": operation_name, "task_status": "failed"},
                "message": f"Query error: {str(e)}"
            }

    def download_video(self, video_uri: str) -> bytes:
        """
        Fetch the generated video bytes.

        The file endpoint requires the same API key as the submission; gs:// URIs
        are read through the storage client instead. Raises on failure.
        """
        if video_uri.startswith("gs://"):
            from ..storage.gcs_utils import download_to_bytes
            return download_to_bytes(video_uri)

        logger.info(f"[GoogleVeo] Downloading video: {video_uri[:120]}")
        response = self.session.get(
            video_uri,
            headers={"x-goog-api-key": self.api_key},
            timeout=self.download_timeout,
            stream=True
        )
        response.raise_for_status()

        chunks = []
        for chunk in response.iter_content(chunk_size=8192):
            if chunk:
                chunks.append(chunk)
        data = b"".join(chunks)
        logger.info(f"[GoogleVeo] Downloaded {len(data)} bytes")
        return data
