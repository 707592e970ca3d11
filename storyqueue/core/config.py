"""Configuration for the storyboard generation queue"""

import os
import json
from typing import List, Optional
from dotenv import load_dotenv
from google.oauth2 import service_account

# Load environment variables
load_dotenv()

# Logging Configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# GCP Configuration
PROJECT_ID = os.getenv('GCP_PROJECT_ID')

# Redis Configuration (queue store + entity records)
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
REDIS_MAX_CONNECTIONS = 30
QUEUE_KEY_PREFIX = os.getenv('QUEUE_KEY_PREFIX', 'pgq')
RECORD_KEY_PREFIX = os.getenv('RECORD_KEY_PREFIX', 'kv')

# Gemini API Configuration
GOOGLE_API_KEY = os.getenv('GOOGLE_GENERATIVE_AI_API_KEY', '')
GEMINI_API_BASE = os.getenv('GEMINI_API_BASE', 'https://generativelanguage.googleapis.com/v1beta')

# Storage Configuration
IMAGE_BUCKET_NAME = os.getenv('IMAGE_BUCKET_NAME', 'storyboard-images')
VIDEO_BUCKET_NAME = os.getenv('VIDEO_BUCKET_NAME', 'storyboard-videos')
PUBLIC_STORAGE_BASE_URL = os.getenv('PUBLIC_STORAGE_BASE_URL', 'https://storage.googleapis.com')

# Dispatch Trigger Configuration
WORKER_BASE_URL = os.getenv('WORKER_BASE_URL', '')
WORKER_AUTH_TOKEN = os.getenv('WORKER_AUTH_TOKEN', '')
DISPATCH_TIMEOUT = float(os.getenv('DISPATCH_TIMEOUT', '2.0'))  # seconds


def _env_list(name: str, default: List[str]) -> List[str]:
    """Read a comma separated list from the environment"""
    raw = os.getenv(name, '')
    values = [item.strip() for item in raw.split(',') if item.strip()]
    return values or list(default)


def _env_optional_int(name: str) -> Optional[int]:
    """Read a positive integer; unset or 0 disables the setting"""
    raw = os.getenv(name, '').strip()
    if not raw:
        return None
    value = int(raw)
    return value if value > 0 else None


# Dead-letter cap: messages read more often than this are archived instead of processed.
# Disabled by default (redelivery is unbounded).
DEAD_LETTER_MAX_READ_COUNT = _env_optional_int('DEAD_LETTER_MAX_READ_COUNT')

MEDIA_KINDS = ("image", "video")

# Per media kind queue parameters.
# The visibility timeout MUST exceed the strategy's worst-case walltime, otherwise
# the same job is read by a second worker while the first one is still running.
QUEUE_CONFIG = {
    "image": {
        "queue_name": "image_generation",
        "visibility_timeout": 120,  # synchronous generation, tens of seconds
        "batch_size": 5,
        "max_workers": 4,  # bounded parallelism for cheap calls
        "bucket_name": IMAGE_BUCKET_NAME,
    },
    "video": {
        "queue_name": "video_generation",
        "visibility_timeout": 600,  # 10 minutes, covers the full poll budget + download/upload
        "batch_size": 1,  # one long-running operation at a time
        "max_workers": 1,
        "bucket_name": VIDEO_BUCKET_NAME,
    },
}

# Image Generation Settings
IMAGE_GENERATION_CONFIG = {
    "candidate_models": _env_list('IMAGE_MODEL_CANDIDATES', ["gemini-2.5-flash-image-preview"]),
    "default_mime_type": "image/png",
    "reference_timeout": 60,
}

# Google Veo Configuration
GOOGLE_VEO_CONFIG = {
    "candidate_models": _env_list('VIDEO_MODEL_CANDIDATES', [
        "veo-3.1-generate-preview",
        "veo-3.1-fast-generate-preview",
        "veo-3.0-fast-generate-001",
        "veo-2.0-generate-001",
    ]),
    "poll_interval": 10,  # 10s polling per official examples
    "max_poll_attempts": 36,  # 36 * 10s = 6 minutes
    "request_timeout": 60,
    "download_timeout": 120,
    # walltime kept free for download + upload inside the video visibility timeout
    "finish_margin": 180,
    "default_aspect_ratio": "16:9",
    "default_resolution": "720p",
    "default_duration": 8,
    "aspect_ratios": ["16:9", "9:16"],
    "durations": [4, 6, 8],
    "resolutions": ["720p", "1080p"],
}

# Queue Monitor (baseline pull schedule)
MONITOR_CONFIG = {
    "check_interval": 10,  # seconds between queue checks
    "max_runtime": 50,  # leave headroom inside a 60s host budget
}


_credentials = None


def get_credentials():
    """Service account credentials from the credentials_dict env var.

    Returns None when unset so google clients fall back to application default credentials.
    """
    global _credentials
    if _credentials is None:
        credentials_json = os.getenv('credentials_dict')
        if not credentials_json:
            return None
        credentials_info = json.loads(credentials_json)
        _credentials = service_account.Credentials.from_service_account_info(
            credentials_info,
            scopes=['https://www.googleapis.com/auth/cloud-platform']
        )
    return _credentials


def get_queue_config(media_kind: str) -> dict:
    """Queue parameters for a media kind"""
    if media_kind not in QUEUE_CONFIG:
        raise ValueError(f"Invalid media_kind: {media_kind}. Must be one of {list(MEDIA_KINDS)}")
    return QUEUE_CONFIG[media_kind]


def media_kind_for_queue(queue_name: str) -> Optional[str]:
    """Reverse lookup of the media kind served by a queue"""
    for media_kind, queue_config in QUEUE_CONFIG.items():
        if queue_config["queue_name"] == queue_name:
            return media_kind
    return None
