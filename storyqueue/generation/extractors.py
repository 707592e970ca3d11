"""Video URI extraction from finished long-running operations

The Veo surface has returned the generated sample under several response
shapes over its versions; each extractor handles one of them and the first
non-empty match wins.
"""

from typing import Dict, Any, Optional, Callable, List


def _first(items) -> Dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _generate_video_response_samples(response: Dict[str, Any]) -> Optional[str]:
    samples = (response.get("generateVideoResponse") or {}).get("generatedSamples")
    return (_first(samples).get("video") or {}).get("uri")


def _generated_samples(response: Dict[str, Any]) -> Optional[str]:
    return (_first(response.get("generatedSamples")).get("video") or {}).get("uri")


def _generated_videos(response: Dict[str, Any]) -> Optional[str]:
    return (_first(response.get("generatedVideos")).get("video") or {}).get("uri")


def _single_video(response: Dict[str, Any]) -> Optional[str]:
    return (response.get("video") or {}).get("uri")


def _gcs_videos(response: Dict[str, Any]) -> Optional[str]:
    return _first(response.get("videos")).get("gcsUri")


def _predictions(response: Dict[str, Any]) -> Optional[str]:
    return _first(response.get("predictions")).get("uri")


VIDEO_URI_EXTRACTORS: List[Callable[[Dict[str, Any]], Optional[str]]] = [
    _generate_video_response_samples,
    _generated_samples,
    _generated_videos,
    _single_video,
    _gcs_videos,
    _predictions,
]


def extract_video_uri(response: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the first video URI any extractor finds, or None"""
    if not isinstance(response, dict):
        return None
    for extractor in VIDEO_URI_EXTRACTORS:
        uri = extractor(response)
        if uri:
            return uri
    return None
