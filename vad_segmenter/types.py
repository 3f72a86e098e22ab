"""Type definitions for frames, segmentation state and emitted events."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union
import numpy as np
import numpy.typing as npt


class SegmentationState(Enum):
    """Hysteresis states for speech segmentation.

    State Transitions:
    - SILENCE: No speech, waiting for a frame above the positive threshold
    - POTENTIAL_START: Above-threshold frames accumulating towards min_speech_duration
    - SPEAKING: Speech confirmed, every frame is buffered
    - POTENTIAL_END: Probability fell below the negative threshold, waiting for silence_duration

    Transition Rules:
    SILENCE → POTENTIAL_START: p > positive threshold
    POTENTIAL_START → SPEAKING: accumulated speech >= min_speech_duration (speech-start)
    POTENTIAL_START → SILENCE: p < negative threshold (no event)
    SPEAKING → POTENTIAL_END: p < negative threshold
    POTENTIAL_END → SPEAKING: p > positive threshold (no event)
    POTENTIAL_END → SILENCE: accumulated silence >= silence_duration (speech-end)
    """
    SILENCE = auto()
    POTENTIAL_START = auto()
    SPEAKING = auto()
    POTENTIAL_END = auto()


ACTIVE_STATES = (SegmentationState.SPEAKING, SegmentationState.POTENTIAL_END)


@dataclass(frozen=True)
class AudioFrame:
    """Fixed-size inference frame.

    Attributes:
        samples: float32 samples, read-only once the frame is produced
        timestamp: Time of the first sample in seconds
    """
    samples: npt.NDArray[np.float32]
    timestamp: float

    def __post_init__(self):
        self.samples.flags.writeable = False

    def __len__(self) -> int:
        return len(self.samples)


@dataclass
class SegmentationContext:
    """Mutable fields of the segmentation state machine.

    Owned by exactly one SegmentationStateMachine; durations are in
    milliseconds, times in seconds.
    """

    state: SegmentationState = SegmentationState.SILENCE
    speech_start_time: float = 0.0
    speech_end_candidate_time: float | None = None
    potential_speech_duration_ms: float = 0.0
    potential_silence_duration_ms: float = 0.0

    # Last processed frame
    last_probability: float = 0.0
    last_timestamp: float = 0.0

    def reset_to_silence(self) -> None:
        """Clear transient speech tracking, keeping last frame info."""
        self.state = SegmentationState.SILENCE
        self.speech_start_time = 0.0
        self.speech_end_candidate_time = None
        self.potential_speech_duration_ms = 0.0
        self.potential_silence_duration_ms = 0.0

    def reset(self) -> None:
        """Full reset, including last frame info."""
        self.reset_to_silence()
        self.last_probability = 0.0
        self.last_timestamp = 0.0


@dataclass
class StepResult:
    """Outcome of one state machine step.

    Attributes:
        is_speech: True while SPEAKING or POTENTIAL_END (after the step)
        potential_start: Entered POTENTIAL_START on this step
        aborted: Potential start abandoned on this step (no event)
        started: Speech start confirmed on this step
        ended: Segment finalized on this step
        start_timestamp: speech_start_time when started
        end_timestamp: End time of the finalized segment when ended
        include_segment: Whether the finished utterance is long enough for a segment payload
    """
    is_speech: bool
    potential_start: bool = False
    aborted: bool = False
    started: bool = False
    ended: bool = False
    start_timestamp: float | None = None
    end_timestamp: float | None = None
    include_segment: bool = False


@dataclass
class SpeechSegment:
    """Materialized speech segment, pre-padding included.

    Attributes:
        start: Segment start in seconds (end - samples / sample_rate, clamped at 0)
        end: Segment end in seconds
        duration: Duration in milliseconds, derived from the sample count
        samples: Contiguous float32 audio
        avg_probability: Probability of the final frame
        confidence: Staircase of avg_probability
    """
    start: float
    end: float
    duration: float
    samples: npt.NDArray[np.float32]
    avg_probability: float
    confidence: float


@dataclass(frozen=True)
class SpeechStartEvent:
    timestamp: float
    probability: float


@dataclass(frozen=True)
class SpeechEndEvent:
    timestamp: float
    probability: float
    segment: Optional[SpeechSegment] = None


@dataclass(frozen=True)
class VadResultEvent:
    """Emitted for every processed frame, independent of segment boundaries."""
    is_speech: bool
    probability: float
    timestamp: float


SpeechEvent = Union[SpeechStartEvent, SpeechEndEvent, VadResultEvent]


@dataclass
class OracleResult:
    """Probability oracle output.

    Attributes:
        probability: Speech probability in [0, 1]
        state: Updated recurrent state, opaque to the engine
    """
    probability: float
    state: npt.NDArray[np.float32]


@dataclass
class AudioProcessorResult:
    """Result of AudioProcessor.process for one input chunk.

    Attributes:
        data: Processed (optionally normalized) audio
        energy: RMS energy of the processed audio
        normalized: Whether normalization was applied
        timestamp: Chunk timestamp in seconds
        is_speech: VAD decision, only set by process_sync
        probability: Mean frame probability, only set by process_sync
    """
    data: npt.NDArray[np.float32]
    energy: float
    normalized: bool
    timestamp: float
    is_speech: bool | None = None
    probability: float | None = None
