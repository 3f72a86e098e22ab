# vad_segmenter/sound/FrameReassembler.py
"""
Tests for this module:
- tests/test_frame_reassembler.py
"""
import numpy as np
import numpy.typing as npt
from typing import List, Sequence

from ..types import AudioFrame


class FrameReassembler:
    """Cuts arbitrarily sized input chunks into fixed-size inference frames.

    Samples that don't fill a whole frame are carried over to the next call,
    so the concatenation of all emitted frames plus the current remainder is
    always exactly the input stream.

    Frame timestamps are derived from the chunk timestamp: a frame starting
    ``k`` samples into (remainder + chunk) is stamped
    ``timestamp + (k - len(remainder)) / sample_rate``. Timestamps never go
    backwards even when chunk timestamps jitter.

    Args:
        frame_size: Samples per frame (512 @ 16kHz = 32ms)
        sample_rate: Sample rate in Hz
    """

    def __init__(self, frame_size: int = 512, sample_rate: int = 16000):
        self.frame_size: int = frame_size
        self.sample_rate: int = sample_rate
        self._remainder: npt.NDArray[np.float32] = np.array([], dtype=np.float32)
        self._last_frame_timestamp: float | None = None

    @property
    def remainder(self) -> npt.NDArray[np.float32]:
        """Copy of the samples waiting for the next frame."""
        return self._remainder.copy()

    @property
    def pending_samples(self) -> int:
        return len(self._remainder)

    def push(self, samples: Sequence[float] | npt.NDArray, timestamp: float) -> List[AudioFrame]:
        """Append a chunk and return every frame completed by it.

        Args:
            samples: Mono float samples in [-1, 1], any length
            timestamp: Time of the chunk's first sample in seconds

        Returns:
            Complete frames in stream order (possibly empty)
        """
        chunk = np.asarray(samples, dtype=np.float32).reshape(-1)
        carried = len(self._remainder)
        combined = np.concatenate((self._remainder, chunk)) if carried else chunk

        frames: List[AudioFrame] = []
        offset = 0
        while offset + self.frame_size <= len(combined):
            frame_ts = timestamp + (offset - carried) / self.sample_rate
            if self._last_frame_timestamp is not None and frame_ts < self._last_frame_timestamp:
                frame_ts = self._last_frame_timestamp
            self._last_frame_timestamp = frame_ts

            frames.append(AudioFrame(
                samples=combined[offset:offset + self.frame_size].copy(),
                timestamp=frame_ts
            ))
            offset += self.frame_size

        self._remainder = combined[offset:].copy()
        return frames

    def reset(self) -> None:
        """Drop the remainder and timestamp history."""
        self._remainder = np.array([], dtype=np.float32)
        self._last_frame_timestamp = None
