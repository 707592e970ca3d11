"""
Gemini image generation using google-genai SDK
"""

import base64
import logging
from typing import Dict, Any, Optional

from google import genai
from google.genai import errors, types

from ..core.config import GOOGLE_API_KEY, IMAGE_GENERATION_CONFIG

logger = logging.getLogger(__name__)


def _decode_image_data(data) -> bytes:
    """Inline data arrives as raw bytes from the SDK, base64 text from raw JSON"""
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


class GeminiImageGenerator:
    """Synchronous image generation/editing via Gemini image models"""

    def __init__(self, api_key: str = None, client=None):
        self.api_key = api_key if api_key is not None else GOOGLE_API_KEY
        self._client = client

    @property
    def client(self):
        """Lazy client initialization"""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate_image(
        self,
        prompt: str,
        model: str,
        reference: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Generate (or edit) one image

        Args:
            prompt: Image prompt or edit instruction
            model: Gemini image model id
            reference: Optional source image as {"data": bytes, "mime_type": str}

        Returns:
            Dict with code (0=success), data (image_bytes, mime_type, quota_exceeded), and message
        """
        contents = []
        if reference:
            contents.append(types.Part.from_bytes(
                data=reference["data"],
                mime_type=reference.get("mime_type", IMAGE_GENERATION_CONFIG["default_mime_type"])
            ))
        contents.append(prompt)

        try:
            logger.info(f"[Gemini Image] Model: {model}, edit: {bool(reference)}, prompt: {prompt[:200]}...")
            response = self.client.models.generate_content(
                model=model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                    candidate_count=1
                )
            )
        except errors.APIError as e:
            quota_exceeded = e.code == 429 or "RESOURCE_EXHAUSTED" in str(e)
            logger.error(f"[Gemini Image] API error from {model} (code {e.code}): {str(e)}")
            return {
                "code": -1,
                "data": {"image_bytes": None, "quota_exceeded": quota_exceeded},
                "message": f"Gemini API error: {str(e)}"
            }
        except Exception as e:
            logger.error(f"[Gemini Image] Error generating image: {str(e)}")
            return {
                "code": -1,
                "data": {"image_bytes": None, "quota_exceeded": False},
                "message": f"Image generation error: {str(e)}"
            }

        text_response = None
        if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
            for part in response.candidates[0].content.parts:
                if getattr(part, "thought", None):
                    continue
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    image_bytes = _decode_image_data(part.inline_data.data)
                    mime_type = part.inline_data.mime_type or IMAGE_GENERATION_CONFIG["default_mime_type"]
                    logger.info(f"[Gemini Image] Generated {len(image_bytes)} bytes ({mime_type})")
                    return {
                        "code": 0,
                        "data": {"image_bytes": image_bytes, "mime_type": mime_type, "quota_exceeded": False},
                        "message": "Success"
                    }
                if getattr(part, "text", None):
                    text_response = part.text

        logger.warning(f"[Gemini Image] No image in response from {model}")
        return {
            "code": -1,
            "data": {"image_bytes": None, "quota_exceeded": False},
            "message": f"No image generated in response{': ' + text_response[:200] if text_response else ''}"
        }
