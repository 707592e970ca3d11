"""Storage utilities for generated assets and entity records"""

from .gcs_utils import (
    AssetPublisher,
    build_asset_path,
    derive_entity_id,
    download_to_bytes,
    fetch_reference_asset,
    public_url
)
from .entity_linker import EntityLinker, resolve_entity_key, build_asset_patch
from .records import RedisRecordStore

__all__ = [
    'AssetPublisher',
    'build_asset_path',
    'derive_entity_id',
    'download_to_bytes',
    'fetch_reference_asset',
    'public_url',
    'EntityLinker',
    'resolve_entity_key',
    'build_asset_patch',
    'RedisRecordStore'
]
