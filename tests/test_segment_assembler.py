"""Tests for SegmentAssembler and the confidence staircase."""

import numpy as np
import pytest

from vad_segmenter.sound.SegmentAssembler import SegmentAssembler, calculate_confidence
from vad_segmenter.types import AudioFrame


def frames(count: int, size: int = 512):
    return [AudioFrame(samples=np.full(size, float(i), dtype=np.float32), timestamp=i * size / 16000)
            for i in range(count)]


@pytest.mark.parametrize("probability,expected", [
    (0.95, 1.0),
    (0.91, 1.0),
    (0.9, 0.9),
    (0.75, 0.9),
    (0.7, 0.8),
    (0.6, 0.8),
    (0.5, 0.5),
    (0.2, 0.2),
])
def test_confidence_staircase(probability, expected):
    assert calculate_confidence(probability) == pytest.approx(expected)


def test_assemble_concatenates_in_order():
    segment = SegmentAssembler(16000).assemble(frames(4), end_time=10.0, probability=0.8)

    assert len(segment.samples) == 4 * 512
    assert segment.samples.dtype == np.float32
    assert list(segment.samples[::512]) == [0.0, 1.0, 2.0, 3.0]


def test_start_and_duration_derived_from_sample_count():
    segment = SegmentAssembler(16000).assemble(frames(50), end_time=10.0, probability=0.8)

    assert segment.duration == pytest.approx(1600.0)
    assert segment.end == pytest.approx(10.0)
    assert segment.start == pytest.approx(8.4)


def test_start_clamped_at_zero():
    segment = SegmentAssembler(16000).assemble(frames(50), end_time=1.0, probability=0.8)

    assert segment.start == 0.0


def test_probability_and_confidence_from_final_frame():
    segment = SegmentAssembler(16000).assemble(frames(2), end_time=1.0, probability=0.65)

    assert segment.avg_probability == pytest.approx(0.65)
    assert segment.confidence == pytest.approx(0.8)


def test_empty_frames_give_empty_segment():
    segment = SegmentAssembler(16000).assemble([], end_time=3.0, probability=0.4)

    assert len(segment.samples) == 0
    assert segment.duration == 0.0
    assert segment.start == pytest.approx(3.0)
