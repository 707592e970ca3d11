"""
GCS utilities for generated asset storage
"""

import time
import logging
from pathlib import Path
from typing import Optional, Dict, Any, Callable
from urllib.parse import quote, urlparse

import requests
from google.cloud import storage

from ..core.config import (
    PROJECT_ID, PUBLIC_STORAGE_BASE_URL, IMAGE_GENERATION_CONFIG, get_credentials, get_queue_config
)

logger = logging.getLogger(__name__)


# Initialize storage client once
_storage_client = None


def _get_storage_client():
    """Get or create the storage client (singleton pattern)"""
    global _storage_client
    if _storage_client is None:
        _storage_client = storage.Client(project=PROJECT_ID, credentials=get_credentials())
    return _storage_client


CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}

DEFAULT_EXTENSIONS = {"image": "png", "video": "mp4"}


def extension_for_content_type(content_type: Optional[str], media_kind: str) -> str:
    """File extension for a MIME type, falling back to the media kind's default"""
    if content_type:
        ext = CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if ext:
            return ext
    return DEFAULT_EXTENSIONS.get(media_kind, "bin")


def detect_mime_type(uri: str) -> str:
    """
    Detect MIME type from file extension

    Args:
        uri: File URI or path

    Returns:
        MIME type string (defaults to image/png)
    """
    ext = Path(urlparse(uri).path).suffix.lower()
    mime_types = {
        '.png': 'image/png',
        '.jpg': 'image/jpeg',
        '.jpeg': 'image/jpeg',
        '.webp': 'image/webp',
        '.gif': 'image/gif'
    }
    return mime_types.get(ext, IMAGE_GENERATION_CONFIG["default_mime_type"])


def derive_entity_id(owner_entity_key: str) -> str:
    """
    File-name stem for an owner key: first and last key segments.

    scene:sb1:sc3 -> scene-sc3, character:sb1:ch2 -> character-ch2
    """
    parts = owner_entity_key.split(":")
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]}-{parts[-1]}"


def build_asset_path(owner_entity_key: Optional[str], media_kind: str, ext: str, timestamp_ms: int) -> str:
    """Object path for a generated asset; unique per millisecond and owner"""
    if owner_entity_key:
        return f"{owner_entity_key}/{derive_entity_id(owner_entity_key)}_{timestamp_ms}.{ext}"
    return f"unlinked/{media_kind}-{timestamp_ms}_{timestamp_ms}.{ext}"


def public_url(bucket_name: str, blob_name: str) -> str:
    """Public HTTPS reference for an object"""
    return f"{PUBLIC_STORAGE_BASE_URL.rstrip('/')}/{bucket_name}/{quote(blob_name)}"


def download_to_bytes(url: str, timeout: int = 60) -> bytes:
    """
    Download a file directly to memory

    Args:
        url: gs:// URI (read through the storage client) or HTTP(S) URL

    Returns:
        File contents as bytes
    """
    if url.startswith("gs://"):
        parts = url.replace("gs://", "").split("/", 1)
        bucket_name = parts[0]
        blob_name = parts[1] if len(parts) > 1 else ""

        blob = _get_storage_client().bucket(bucket_name).blob(blob_name)
        return blob.download_as_bytes()

    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def fetch_reference_asset(url: str) -> Dict[str, Any]:
    """Download a reference image for inline embedding: {"data": bytes, "mime_type": str}"""
    logger.info(f"[GCS Utils] Fetching reference asset: {url[:120]}")
    data = download_to_bytes(url, timeout=IMAGE_GENERATION_CONFIG["reference_timeout"])
    return {"data": data, "mime_type": detect_mime_type(url)}


class AssetPublisher:
    """Uploads generated bytes to the media kind's bucket and returns the public URL"""

    def __init__(self, storage_client=None, clock: Callable[[], float] = time.time):
        self._storage_client = storage_client
        self._clock = clock

    @property
    def storage_client(self):
        if self._storage_client is None:
            self._storage_client = _get_storage_client()
        return self._storage_client

    def publish(self, owner_entity_key: Optional[str], media_kind: str, data: bytes, content_type: str) -> str:
        """
        Upload an asset under a timestamped, never-overwritten path.

        Raises on upload failure (the job is then left for redelivery).
        """
        bucket_name = get_queue_config(media_kind)["bucket_name"]
        timestamp_ms = int(self._clock() * 1000)
        ext = extension_for_content_type(content_type, media_kind)
        blob_name = build_asset_path(owner_entity_key, media_kind, ext, timestamp_ms)

        blob = self.storage_client.bucket(bucket_name).blob(blob_name)
        blob.upload_from_string(data, content_type=content_type, if_generation_match=0)

        url = public_url(bucket_name, blob_name)
        logger.info(f"[GCS Utils] Uploaded {len(data)} bytes to gs://{bucket_name}/{blob_name}")
        return url
