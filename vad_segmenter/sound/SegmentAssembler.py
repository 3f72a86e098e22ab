# vad_segmenter/sound/SegmentAssembler.py
import logging
import numpy as np
from typing import Sequence

from ..types import AudioFrame, SpeechSegment

logger = logging.getLogger(__name__)


def calculate_confidence(probability: float) -> float:
    """Staircase confidence from the final frame probability.

    Not a segment-wide average: >0.9 -> 1.0, >0.7 -> 0.9, >0.5 -> 0.8,
    otherwise the probability itself.
    """
    if probability > 0.9:
        return 1.0
    if probability > 0.7:
        return 0.9
    if probability > 0.5:
        return 0.8
    return probability


class SegmentAssembler:
    """Builds the contiguous SpeechSegment payload at speech end.

    The segment start is derived backwards from the end time and the actual
    sample count, so it accounts for pre-padding and any trailing silence
    frames buffered while waiting for the end to be confirmed.

    Args:
        sample_rate: Sample rate in Hz
        verbose: Enable debug logging of assembled segments
    """

    def __init__(self, sample_rate: int = 16000, verbose: bool = False):
        self.sample_rate: int = sample_rate
        self.verbose: bool = verbose

    def assemble(self, frames: Sequence[AudioFrame], end_time: float, probability: float) -> SpeechSegment:
        """Concatenate frames into one SpeechSegment.

        Args:
            frames: Frames from the cut index through the newest frame
            end_time: Segment end in seconds
            probability: Probability of the final processed frame

        Returns:
            SpeechSegment with start/end in seconds and duration in milliseconds
        """
        if frames:
            samples = np.concatenate([frame.samples for frame in frames]).astype(np.float32, copy=False)
        else:
            samples = np.array([], dtype=np.float32)

        duration_s = len(samples) / self.sample_rate
        start = max(0.0, end_time - duration_s)

        if self.verbose:
            logger.debug(
                "SegmentAssembler: %d frames, %d samples, %.0fms, start=%.3fs end=%.3fs",
                len(frames), len(samples), duration_s * 1000.0, start, end_time
            )

        return SpeechSegment(
            start=start,
            end=end_time,
            duration=duration_s * 1000.0,
            samples=samples,
            avg_probability=probability,
            confidence=calculate_confidence(probability)
        )
