# vad_segmenter/AudioProcessor.py
"""
Tests for this module:
- tests/test_audio_processor.py
"""
from __future__ import annotations
import logging
import numpy as np
import numpy.typing as npt
from typing import Any, Literal, Mapping, Optional

from .config import VadConfig
from .SpeechSegmenter import SpeechSegmenter
from .types import AudioProcessorResult

ConfidenceLevel = Literal['high', 'medium', 'low']


def normalize_peak(audio: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Scale audio so its largest absolute sample is 1.0.

    Silent (all-zero) and empty input is returned unchanged.
    """
    if audio.size == 0:
        return audio
    peak = float(np.max(np.abs(audio)))
    if peak == 0.0:
        return audio
    return (audio / peak).astype(np.float32, copy=False)


def rms_energy(audio: npt.NDArray[np.float32]) -> float:
    """RMS energy of the chunk (0.0 for empty input)."""
    if audio.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(audio, dtype=np.float64))))


def confidence_level(probability: float) -> ConfidenceLevel:
    """Bucket a speech probability: >0.8 high, >0.5 medium, otherwise low."""
    if probability > 0.8:
        return 'high'
    if probability > 0.5:
        return 'medium'
    return 'low'


class AudioProcessor:
    """Front end for the segmenter: optional normalization and energy metering.

    Dual-Path Audio Processing:
    - process(): non-blocking, frames are queued on the segmenter and VAD results
      arrive through the segmenter's event publisher
    - process_sync(): awaits the chunk's frames and returns the VAD decision inline

    Peak normalization scales each chunk to [-1, 1] before it reaches the oracle;
    the segment payload therefore carries normalized audio when enabled.

    Args:
        segmenter: Initialized SpeechSegmenter (None when VAD is not used)
        normalize: Apply peak normalization to each chunk
        verbose: Enable debug logging
    """

    def __init__(self,
                 segmenter: Optional[SpeechSegmenter] = None,
                 normalize: bool = False,
                 verbose: bool = False):
        self.segmenter: Optional[SpeechSegmenter] = segmenter
        self.normalize: bool = normalize
        self.verbose: bool = verbose

    @property
    def vad_active(self) -> bool:
        return self.segmenter is not None and self.segmenter.config.enabled

    def _prepare(self, audio: npt.ArrayLike) -> tuple[npt.NDArray[np.float32], float]:
        data = np.asarray(audio, dtype=np.float32).reshape(-1)
        if self.normalize:
            data = normalize_peak(data)
        return data, rms_energy(data)

    def process(self, audio: npt.ArrayLike, timestamp: float) -> AudioProcessorResult:
        """Normalize, meter and queue chunk for VAD without waiting.

        Args:
            audio: Mono float samples
            timestamp: Chunk timestamp in seconds

        Returns:
            AudioProcessorResult without VAD fields (results come via events)
        """
        data, energy = self._prepare(audio)

        if self.vad_active:
            self.segmenter.enqueue(data, timestamp)
        elif self.verbose:
            logging.debug("AudioProcessor: VAD inactive, chunk at %.3fs not analysed", timestamp)

        return AudioProcessorResult(
            data=data,
            energy=energy,
            normalized=self.normalize,
            timestamp=timestamp
        )

    async def process_sync(self, audio: npt.ArrayLike, timestamp: float) -> AudioProcessorResult:
        """Like process(), but waits for the chunk's VAD decision.

        Raises:
            OracleFailure: If the oracle failed for one of the chunk's frames
        """
        data, energy = self._prepare(audio)

        is_speech: bool | None = None
        probability: float | None = None
        if self.vad_active:
            vad_result = await self.segmenter.process(data, timestamp)
            is_speech = vad_result['is_speech']
            probability = vad_result['probability']

        return AudioProcessorResult(
            data=data,
            energy=energy,
            normalized=self.normalize,
            timestamp=timestamp,
            is_speech=is_speech,
            probability=probability
        )

    @staticmethod
    def confidence_level(probability: float) -> ConfidenceLevel:
        return confidence_level(probability)

    @property
    def queue_length(self) -> int:
        return self.segmenter.queue_length if self.segmenter is not None else 0

    async def wait_for_queue(self) -> None:
        if self.segmenter is not None:
            await self.segmenter.wait_for_queue_empty()

    def flush(self, timestamp: float | None = None) -> None:
        """Finish the open utterance without waiting for queued frames."""
        if self.segmenter is not None:
            self.segmenter.flush(timestamp)

    async def flush_async(self, timestamp: float | None = None) -> None:
        """Wait for queued frames, then finish the open utterance."""
        if self.segmenter is not None:
            await self.segmenter.flush_async(timestamp)

    def reset(self) -> None:
        if self.segmenter is not None:
            self.segmenter.reset()

    def update_config(self, normalize: bool | None = None,
                      vad: VadConfig | Mapping[str, Any] | None = None) -> None:
        """Update processing options and forward VAD overrides to the segmenter.

        Raises:
            ConfigurationError: If the VAD overrides are invalid
        """
        if vad is not None and self.segmenter is not None:
            self.segmenter.update_config(vad)
        if normalize is not None:
            self.normalize = normalize

    async def close(self) -> None:
        """Close the segmenter (flushing the open utterance) and detach it."""
        if self.segmenter is not None:
            await self.segmenter.close()
            self.segmenter = None
