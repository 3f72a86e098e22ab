# vad_segmenter/sound/SegmentationStateMachine.py
"""
Tests for this module:
- tests/test_segmentation_state_machine.py - Transitions, hysteresis, forced end
"""
from __future__ import annotations
import logging

from ..config import VadConfig
from ..types import ACTIVE_STATES, SegmentationContext, SegmentationState, StepResult

logger = logging.getLogger(__name__)


class SegmentationStateMachine:
    """Four-state hysteresis machine over per-frame speech probabilities.

    Two asymmetric thresholds keep the machine from oscillating around a
    single cutoff:
    - Only p > positive_speech_threshold counts towards speech
    - Only p < negative_speech_threshold counts towards silence
    - Frames in between neither advance nor abort accumulation

    Durations advance by one frame duration per step; the first frame of a
    potential start or potential end already counts as one frame.

    The machine only decides; buffering and segment assembly are driven by
    the caller from the returned StepResult.

    Args:
        config: VadConfig with thresholds and durations
        verbose: Enable debug logging of transitions
    """

    def __init__(self, config: VadConfig, verbose: bool = False):
        self.config: VadConfig = config
        self.context = SegmentationContext()
        self.verbose: bool = verbose

    @property
    def state(self) -> SegmentationState:
        return self.context.state

    @property
    def is_speech_active(self) -> bool:
        """True exactly while SPEAKING or POTENTIAL_END."""
        return self.context.state in ACTIVE_STATES

    def update_config(self, config: VadConfig) -> None:
        """Swap thresholds and durations; applies from the next step."""
        self.config = config

    def step(self, probability: float, timestamp: float) -> StepResult:
        """Advance the machine by one frame.

        Args:
            probability: Oracle probability for the frame
            timestamp: Frame timestamp in seconds

        Returns:
            StepResult describing transitions taken on this frame
        """
        c = self.context  # shorthand for cleaner code
        cfg = self.config
        frame_ms = cfg.frame_duration_ms
        positive = cfg.positive_speech_threshold
        negative = cfg.negative_speech_threshold

        c.last_probability = probability
        c.last_timestamp = timestamp
        result = StepResult(is_speech=False)

        match c.state:
            case SegmentationState.SILENCE:
                if probability > positive:
                    # SILENCE → POTENTIAL_START
                    c.state = SegmentationState.POTENTIAL_START
                    c.speech_start_time = timestamp
                    c.potential_speech_duration_ms = frame_ms
                    c.potential_silence_duration_ms = 0.0
                    result.potential_start = True
                    if self.verbose:
                        logger.debug("Potential speech at %.3fs (p=%.3f)", timestamp, probability)
                    # a single frame may already satisfy a short min_speech_duration
                    if c.potential_speech_duration_ms >= cfg.min_speech_duration_ms:
                        self._confirm_start(result, probability)

            case SegmentationState.POTENTIAL_START:
                if probability > positive:
                    c.potential_speech_duration_ms += frame_ms
                    if c.potential_speech_duration_ms >= cfg.min_speech_duration_ms:
                        # POTENTIAL_START → SPEAKING
                        self._confirm_start(result, probability)
                elif probability < negative:
                    # POTENTIAL_START → SILENCE
                    if self.verbose:
                        logger.debug(
                            "Potential speech cancelled at %.3fs (p=%.3f)", timestamp, probability
                        )
                    c.reset_to_silence()
                    result.aborted = True

            case SegmentationState.SPEAKING:
                if probability < negative:
                    # SPEAKING → POTENTIAL_END
                    c.state = SegmentationState.POTENTIAL_END
                    c.potential_silence_duration_ms = frame_ms
                    c.speech_end_candidate_time = timestamp
                    if self.verbose:
                        logger.debug("Potential speech end at %.3fs (p=%.3f)", timestamp, probability)
                    if c.potential_silence_duration_ms >= cfg.silence_duration_ms:
                        self._finish(result, timestamp)
                else:
                    c.potential_silence_duration_ms = 0.0
                    c.speech_end_candidate_time = None

            case SegmentationState.POTENTIAL_END:
                if probability < negative:
                    c.potential_silence_duration_ms += frame_ms
                    if c.potential_silence_duration_ms >= cfg.silence_duration_ms:
                        # POTENTIAL_END → SILENCE
                        end_time = c.speech_end_candidate_time
                        self._finish(result, end_time if end_time is not None else timestamp)
                elif probability > positive:
                    # POTENTIAL_END → SPEAKING
                    if self.verbose:
                        logger.debug("Speech resumed at %.3fs (p=%.3f)", timestamp, probability)
                    c.state = SegmentationState.SPEAKING
                    c.potential_silence_duration_ms = 0.0
                    c.speech_end_candidate_time = None

        result.is_speech = self.is_speech_active
        return result

    def force_end(self, timestamp: float | None = None) -> StepResult:
        """Terminate the current utterance immediately (flush).

        SPEAKING / POTENTIAL_END: finalize with end time = timestamp, else the
        pending end candidate, else the last processed frame timestamp.
        POTENTIAL_START: discard accumulation silently.
        SILENCE: nothing to do.

        Returns:
            StepResult with ended=True when a speech-end must be emitted
        """
        c = self.context
        result = StepResult(is_speech=False)

        if self.is_speech_active:
            if timestamp is not None:
                end_time = timestamp
            elif c.speech_end_candidate_time is not None:
                end_time = c.speech_end_candidate_time
            else:
                end_time = c.last_timestamp
            self._finish(result, end_time)
        elif c.state == SegmentationState.POTENTIAL_START:
            c.reset_to_silence()
            result.aborted = True

        result.is_speech = self.is_speech_active
        return result

    def reset(self) -> None:
        """Return to SILENCE and forget the last frame."""
        self.context.reset()

    def _confirm_start(self, result: StepResult, probability: float) -> None:
        c = self.context
        c.state = SegmentationState.SPEAKING
        c.potential_speech_duration_ms = 0.0
        c.potential_silence_duration_ms = 0.0
        c.speech_end_candidate_time = None
        result.started = True
        result.start_timestamp = c.speech_start_time
        if self.verbose:
            logger.debug("Speech START at %.3fs (p=%.3f)", c.speech_start_time, probability)

    def _finish(self, result: StepResult, end_time: float) -> None:
        c = self.context
        speech_duration_ms = (end_time - c.speech_start_time) * 1000.0
        result.ended = True
        result.end_timestamp = end_time
        result.start_timestamp = c.speech_start_time
        result.include_segment = speech_duration_ms >= self.config.min_speech_duration_ms
        if self.verbose:
            logger.debug(
                "Speech END at %.3fs, duration %.0fms (min %.0fms)%s",
                end_time, speech_duration_ms, self.config.min_speech_duration_ms,
                "" if result.include_segment else ", too short for a segment"
            )
        c.reset_to_silence()
