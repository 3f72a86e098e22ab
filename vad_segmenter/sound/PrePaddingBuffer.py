# vad_segmenter/sound/PrePaddingBuffer.py
"""
Tests for this module:
- tests/test_pre_padding_buffer.py
"""
from __future__ import annotations
import math
import logging
from typing import List

from ..types import AudioFrame

logger = logging.getLogger(__name__)

# Batch pruning kicks in once the buffer holds this many times the retention limit
PRUNE_TRIGGER_FACTOR = 1.5


class PrePaddingBuffer:
    """Rolling frame buffer that supplies pre-speech padding.

    Retention Strategy:
    - Silence: keep 2 x pad_frames frames, where
      pad_frames = ceil(pad_samples / last_frame_length)
    - Pruning is batched: nothing is dropped until the buffer exceeds
      1.5 x the retention limit, then it is cut back to the limit
    - Potential start / speaking / potential end: append only, never prune

    Segment Anchoring:
    - mark_speech_start() records the buffer index of the first above-threshold frame
    - fix_cut_index() fixes, once per utterance, the index pad_frames before it
    - frames_from_cut() returns buffer[cut_index:] for segment assembly

    Args:
        pre_pad_ms: Pre-speech padding in milliseconds
        sample_rate: Sample rate in Hz
    """

    def __init__(self, pre_pad_ms: float, sample_rate: int = 16000):
        self.pre_pad_ms: float = pre_pad_ms
        self.sample_rate: int = sample_rate
        self._frames: List[AudioFrame] = []
        self._speech_start_index: int | None = None
        self._cut_index: int | None = None

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> List[AudioFrame]:
        return list(self._frames)

    @property
    def cut_index(self) -> int | None:
        return self._cut_index

    @property
    def pad_frames(self) -> int:
        """Frames needed to cover pre_pad_ms, based on the newest frame length."""
        last_length = len(self._frames[-1]) if self._frames else 0
        if last_length == 0:
            return 0
        pad_samples = self.pre_pad_ms * self.sample_rate / 1000.0
        return math.ceil(pad_samples / max(1, last_length))

    @property
    def max_frames(self) -> int:
        """Retention limit during silence."""
        return self.pad_frames * 2

    def append(self, frame: AudioFrame, prune: bool) -> None:
        """Append frame; prune in batch when allowed and over the trigger size.

        Args:
            frame: Frame to retain
            prune: True only while the engine is in silence
        """
        self._frames.append(frame)
        if prune and len(self._frames) > max(1, self.max_frames) * PRUNE_TRIGGER_FACTOR:
            self._prune()

    def mark_speech_start(self) -> None:
        """Remember the newest frame as the first frame of potential speech."""
        self._speech_start_index = len(self._frames) - 1 if self._frames else 0

    def fix_cut_index(self) -> int:
        """Fix where the segment begins, pre-padding included.

        Called once when speech is confirmed. Falls back to the newest frame
        when mark_speech_start() was never called.

        Returns:
            The fixed cut index
        """
        start = self._speech_start_index
        if start is None:
            start = max(0, len(self._frames) - 1)
        self._cut_index = max(0, start - self.pad_frames)
        return self._cut_index

    def frames_from_cut(self) -> List[AudioFrame]:
        """Frames from the cut index to the newest frame."""
        if self._cut_index is None:
            return []
        return self._frames[self._cut_index:]

    def buffered_samples_from_cut(self) -> int:
        return sum(len(frame) for frame in self.frames_from_cut())

    def clear_speech_anchor(self) -> None:
        """Forget the speech start and cut index (utterance aborted or finalized)."""
        self._speech_start_index = None
        self._cut_index = None

    def prune_to_retention(self) -> None:
        """Cut back to the silence retention limit (after finalize)."""
        self.clear_speech_anchor()
        self._prune()

    def clear(self) -> None:
        self._frames = []
        self.clear_speech_anchor()

    def _prune(self) -> None:
        # the newest frame is always kept so it can anchor a speech start
        limit = max(1, self.max_frames)
        if len(self._frames) > limit:
            dropped = len(self._frames) - limit
            self._frames = self._frames[-limit:]
            logger.debug("PrePaddingBuffer: pruned %d frames, kept %d", dropped, len(self._frames))
