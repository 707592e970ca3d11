"""Links generated assets back to the entity records that own them"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from ..schemas.envelope import JobPayload

logger = logging.getLogger(__name__)

# Field the canvas renderer reads, per media kind
RENDERER_URL_FIELDS = {
    "image": "imageUrl",
    "video": "videoUrl",
}


def resolve_entity_key(job: JobPayload) -> Optional[str]:
    """Owner key from the job: explicit key, else scene, else character composite key"""
    if job.owner_entity_key:
        return job.owner_entity_key
    if job.storyboard_id and job.scene_id:
        return f"scene:{job.storyboard_id}:{job.scene_id}"
    if job.storyboard_id and job.character_id:
        return f"character:{job.storyboard_id}:{job.character_id}"
    return None


def build_asset_patch(media_kind: str, asset_url: str, model_used: Optional[str]) -> Dict[str, Any]:
    patch = {
        "asset_url": asset_url,
        "asset_kind": media_kind,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "model_used": model_used,
    }
    renderer_field = RENDERER_URL_FIELDS.get(media_kind)
    if renderer_field:
        patch[renderer_field] = asset_url
    return patch


class EntityLinker:
    """Merge-patches asset references into existing entity records"""

    def __init__(self, record_store=None):
        if record_store is None:
            from .records import RedisRecordStore
            record_store = RedisRecordStore()
        self.record_store = record_store

    def link(self, owner_entity_key: str, patch: Dict[str, Any]) -> bool:
        """False when the record is missing; store errors propagate"""
        updated = self.record_store.update(owner_entity_key, patch)
        if not updated:
            logger.warning(f"[EntityLinker] No record for {owner_entity_key}, asset stored but unlinked")
            return False
        logger.info(f"[EntityLinker] Linked {patch.get('asset_kind')} asset to {owner_entity_key}")
        return True
