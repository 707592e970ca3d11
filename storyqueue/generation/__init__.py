"""Media generation strategies, backend clients and model registry"""

from .strategies import GenerationStrategy, get_strategy
from .strategy_image import ImageStrategy
from .strategy_video import VideoStrategy, build_video_parameters
from .registry import MODEL_REGISTRY, get_model_info, get_candidate_models, apply_model_quirks

__all__ = [
    'GenerationStrategy',
    'get_strategy',
    'ImageStrategy',
    'VideoStrategy',
    'build_video_parameters',
    'MODEL_REGISTRY',
    'get_model_info',
    'get_candidate_models',
    'apply_model_quirks'
]
