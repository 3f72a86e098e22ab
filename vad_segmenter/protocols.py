"""Protocol definitions for segmenter collaborators.

This module defines structural interfaces using Python's Protocol for duck typing.
"""

from typing import Protocol
import numpy as np
import numpy.typing as npt

from vad_segmenter.exceptions import OracleFailure
from vad_segmenter.types import OracleResult, SpeechEndEvent, SpeechStartEvent, VadResultEvent


class ProbabilityOracle(Protocol):
    """Maps one fixed-size frame plus recurrent state to a speech probability.

    The recurrent state is opaque: the engine stores whatever ``run`` returns
    and hands it back on the next call without inspecting it.
    """

    def initial_state(self) -> npt.NDArray[np.float32]:
        """Return a zero-valued recurrent state."""
        ...

    async def run(self, frame: npt.NDArray[np.float32], state: npt.NDArray[np.float32]) -> OracleResult:
        """Run inference on one frame.

        Deterministic given (frame, state). Raising fails only this frame.

        Args:
            frame: Exactly ``inference_frame_size`` float32 samples
            state: Recurrent state from the previous call (or initial_state())

        Returns:
            OracleResult with probability in [0, 1] and the next state
        """
        ...

    def close(self) -> None:
        """Release model resources."""
        ...


class SpeechEventSubscriber(Protocol):
    """Subscriber interface for segmentation events.

    The protocol uses structural subtyping, so classes don't need explicit
    inheritance - just matching method signatures.

    Thread Safety:
        Callbacks run on the event loop task that processes frames.
        A subscriber that raises does not affect other subscribers.
    """

    def on_speech_start(self, event: SpeechStartEvent) -> None:
        """Speech confirmed; timestamp is the first above-threshold frame."""
        ...

    def on_speech_end(self, event: SpeechEndEvent) -> None:
        """Speech finished; event.segment is None for too-short utterances."""
        ...

    def on_vad_result(self, event: VadResultEvent) -> None:
        """Per-frame probability and speech flag."""
        ...

    def on_error(self, error: OracleFailure) -> None:
        """Oracle failed for one frame; engine state is unchanged."""
        ...
