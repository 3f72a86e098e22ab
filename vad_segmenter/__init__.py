# vad_segmenter/__init__.py
from .config import VadConfig, load_config
from .exceptions import ConfigurationError, NotInitializedError, OracleFailure, VadSegmenterError
from .types import (
    AudioFrame,
    SegmentationState,
    SpeechEndEvent,
    SpeechSegment,
    SpeechStartEvent,
    VadResultEvent,
)
from .SpeechEventPublisher import SpeechEventPublisher
from .SpeechSegmenter import SpeechSegmenter
from .AudioProcessor import AudioProcessor

__all__ = [
    'VadConfig',
    'load_config',
    'VadSegmenterError',
    'NotInitializedError',
    'ConfigurationError',
    'OracleFailure',
    'AudioFrame',
    'SegmentationState',
    'SpeechSegment',
    'SpeechStartEvent',
    'SpeechEndEvent',
    'VadResultEvent',
    'SpeechEventPublisher',
    'SpeechSegmenter',
    'AudioProcessor'
]
