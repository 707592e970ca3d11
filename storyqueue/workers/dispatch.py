"""Best-effort push nudge to the worker surface after an enqueue"""

import logging

import requests

from ..core.config import WORKER_BASE_URL, WORKER_AUTH_TOKEN, DISPATCH_TIMEOUT

logger = logging.getLogger(__name__)


def trigger_worker(media_kind: str, base_url: str = None, timeout: float = None) -> bool:
    """
    POST to the media kind's worker endpoint. Never raises.

    The queue monitor is the baseline schedule, so a lost trigger only delays
    processing until the next monitor cycle.
    """
    base_url = base_url if base_url is not None else WORKER_BASE_URL
    if not base_url:
        logger.debug(f"[Dispatch] No worker base URL configured, skipping {media_kind} trigger")
        return False

    headers = {}
    if WORKER_AUTH_TOKEN:
        headers["Authorization"] = f"Bearer {WORKER_AUTH_TOKEN}"

    url = f"{base_url.rstrip('/')}/workers/{media_kind}/run"
    try:
        response = requests.post(url, headers=headers, timeout=timeout or DISPATCH_TIMEOUT)
        logger.info(f"[Dispatch] Triggered {media_kind} worker: HTTP {response.status_code}")
        return response.ok
    except requests.RequestException as e:
        logger.warning(f"[Dispatch] {media_kind} worker trigger failed (queue monitor will pick it up): {str(e)}")
        return False
