"""
Central registry for generation models

Single source of truth for:
- Model metadata per media kind
- Request parameter quirks per model
- Candidate (fallback) order
"""

import logging
from typing import Dict, Any, List, Optional

from ..core.config import GOOGLE_VEO_CONFIG, IMAGE_GENERATION_CONFIG, MEDIA_KINDS

logger = logging.getLogger(__name__)


# ==============================================================================
# MODEL REGISTRY
# ==============================================================================

MODEL_REGISTRY = {
    # Video (long-running operations)
    "veo-3.1-generate-preview": {
        "media_kind": "video",
        "provider": "google",
        "family": "veo",
        "version": "3.1",
        "supports_resolution": True,
        "supports_reference_image": True,
    },
    "veo-3.1-fast-generate-preview": {
        "media_kind": "video",
        "provider": "google",
        "family": "veo",
        "version": "3.1-fast",
        "supports_resolution": True,
        "supports_reference_image": True,
    },
    "veo-3.0-fast-generate-001": {
        "media_kind": "video",
        "provider": "google",
        "family": "veo",
        "version": "3.0-fast",
        "supports_resolution": True,
        "supports_reference_image": True,
    },
    "veo-2.0-generate-001": {
        "media_kind": "video",
        "provider": "google",
        "family": "veo",
        "version": "2.0",
        "supports_resolution": False,  # rejects the resolution parameter
        "supports_reference_image": True,
    },

    # Image (synchronous)
    "gemini-2.5-flash-image-preview": {
        "media_kind": "image",
        "provider": "google",
        "family": "gemini",
        "version": "2.5-flash",
        "supports_reference_image": True,
    },
    "gemini-2.5-flash-image": {
        "media_kind": "image",
        "provider": "google",
        "family": "gemini",
        "version": "2.5-flash",
        "supports_reference_image": True,
    },
}


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================

def get_model_info(model_id: str) -> Optional[Dict[str, Any]]:
    """Get registry info for a model (None for unregistered models)"""
    return MODEL_REGISTRY.get(model_id)


def get_candidate_models(media_kind: str) -> List[str]:
    """Configured fallback order for a media kind"""
    if media_kind == "video":
        return list(GOOGLE_VEO_CONFIG["candidate_models"])
    if media_kind == "image":
        return list(IMAGE_GENERATION_CONFIG["candidate_models"])
    raise ValueError(f"Invalid media_kind: {media_kind}. Must be one of {list(MEDIA_KINDS)}")


def apply_model_quirks(model_id: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of request parameters adjusted to what the model accepts.

    Unregistered models get the parameters unchanged.
    """
    adjusted = dict(parameters)
    info = get_model_info(model_id)
    if not info:
        return adjusted

    if not info.get("supports_resolution", True) and "resolution" in adjusted:
        logger.info(f"[Registry] {model_id} does not accept resolution, dropping '{adjusted['resolution']}'")
        adjusted.pop("resolution")

    return adjusted
