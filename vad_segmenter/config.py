"""VAD segmentation configuration.

Accepts either the nested application config layout used by config/vad_config.json
(``{"audio": {"sample_rate": ...}, "vad": {...}}``) or a flat mapping.
Option names may be given in snake_case or in camelCase
(``positiveSpeechThreshold``, ``silenceDuration`` ...).
"""
from __future__ import annotations
import json
import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigurationError


_CAMEL_CASE_ALIASES: Dict[str, str] = {
    'positiveSpeechThreshold': 'positive_speech_threshold',
    'negativeSpeechThreshold': 'negative_speech_threshold',
    'silenceDuration': 'silence_duration_ms',
    'silence_duration': 'silence_duration_ms',
    'preSpeechPadDuration': 'pre_speech_pad_duration_ms',
    'pre_speech_pad_duration': 'pre_speech_pad_duration_ms',
    'minSpeechDuration': 'min_speech_duration_ms',
    'min_speech_duration': 'min_speech_duration_ms',
    'maxSegmentDuration': 'max_segment_duration_ms',
    'max_segment_duration': 'max_segment_duration_ms',
    'inferenceFrameSize': 'inference_frame_size',
    'sampleRate': 'sample_rate',
    'modelPath': 'model_path',
}


@dataclass(frozen=True)
class VadConfig:
    """Immutable VAD configuration.

    Durations are in milliseconds, frame size in samples.

    Args:
        enabled: When False the engine ignores incoming audio
        positive_speech_threshold: Probability above which a frame counts as speech
        negative_speech_threshold: Probability below which a frame counts as silence
        silence_duration_ms: Silence needed to finalize a segment
        pre_speech_pad_duration_ms: Audio kept before the speech start
        min_speech_duration_ms: Speech needed to confirm a start
        inference_frame_size: Samples per oracle call (512 @ 16kHz = 32ms)
        sample_rate: Input sample rate in Hz
        max_segment_duration_ms: Force a speech-end after this much buffered audio (None = unlimited)
        model_path: Silero VAD ONNX model used by the default oracle
    """
    enabled: bool = True
    positive_speech_threshold: float = 0.3
    negative_speech_threshold: float = 0.25
    silence_duration_ms: float = 1400
    pre_speech_pad_duration_ms: float = 800
    min_speech_duration_ms: float = 400
    inference_frame_size: int = 512
    sample_rate: int = 16000
    max_segment_duration_ms: Optional[float] = None
    model_path: str = './models/silero_vad/silero_vad.onnx'

    def __post_init__(self):
        self.validate()

    @property
    def frame_duration_ms(self) -> float:
        return self.inference_frame_size / self.sample_rate * 1000.0

    @property
    def pre_pad_samples(self) -> float:
        return self.pre_speech_pad_duration_ms * self.sample_rate / 1000.0

    def validate(self) -> None:
        """Check thresholds and durations.

        Raises:
            ConfigurationError: On thresholds outside [0, 1], negative >= positive,
                or non-positive sizes and durations
        """
        for name in ('positive_speech_threshold', 'negative_speech_threshold'):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value!r}", field=name)

        if self.negative_speech_threshold >= self.positive_speech_threshold:
            raise ConfigurationError(
                f"negative_speech_threshold ({self.negative_speech_threshold}) must be lower than "
                f"positive_speech_threshold ({self.positive_speech_threshold})",
                field='negative_speech_threshold'
            )

        frame_size = self.inference_frame_size
        if not _is_number(frame_size) or math.isinf(frame_size) or int(frame_size) != frame_size or frame_size <= 0:
            raise ConfigurationError(
                f"inference_frame_size must be a positive integer, got {frame_size!r}",
                field='inference_frame_size'
            )
        if not _is_number(self.sample_rate) or self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate!r}", field='sample_rate')

        for name in ('silence_duration_ms', 'min_speech_duration_ms'):
            value = getattr(self, name)
            if not _is_number(value) or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}", field=name)
        if not _is_number(self.pre_speech_pad_duration_ms) or self.pre_speech_pad_duration_ms < 0:
            raise ConfigurationError(
                f"pre_speech_pad_duration_ms must not be negative, got {self.pre_speech_pad_duration_ms!r}",
                field='pre_speech_pad_duration_ms'
            )
        if self.max_segment_duration_ms is not None and (
                not _is_number(self.max_segment_duration_ms) or self.max_segment_duration_ms <= 0):
            raise ConfigurationError(
                f"max_segment_duration_ms must be positive or None, got {self.max_segment_duration_ms!r}",
                field='max_segment_duration_ms'
            )

    def merged(self, overrides: Mapping[str, Any]) -> VadConfig:
        """Return a validated copy with overrides applied.

        The current instance is never modified, so a rejected update leaves
        the previous configuration in effect.
        """
        return replace(self, **_normalize_keys(overrides))

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> VadConfig:
        """Build config from a nested application config or a flat mapping.

        Nested layout: ``audio.sample_rate`` plus every key under ``vad``.
        """
        if 'vad' in config or 'audio' in config:
            flat: Dict[str, Any] = dict(config.get('vad', {}))
            audio = config.get('audio', {})
            if 'sample_rate' in audio:
                flat.setdefault('sample_rate', audio['sample_rate'])
        else:
            flat = dict(config)
        return cls(**_normalize_keys(flat))


def _is_number(value: Any) -> bool:
    """Real int/float that is not a bool or NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _normalize_keys(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase aliases to field names and reject unknown keys."""
    known = {f.name for f in fields(VadConfig)}
    normalized: Dict[str, Any] = {}
    for key, value in options.items():
        name = _CAMEL_CASE_ALIASES.get(key, key)
        if name not in known:
            raise ConfigurationError(f"Unknown VAD option: {key}", field=key)
        normalized[name] = value
    return normalized


def load_config(config_path: str | Path) -> VadConfig:
    """Load VadConfig from a JSON file.

    Args:
        config_path: Path to vad_config.json

    Returns:
        Validated VadConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file contains invalid options
    """
    path = Path(config_path)
    with open(path, 'r', encoding='utf-8') as f:
        return VadConfig.from_dict(json.load(f))
