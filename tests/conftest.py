# tests/conftest.py
import asyncio
import logging
import pytest
import numpy as np
from typing import Iterable, List, Sequence

from vad_segmenter.config import VadConfig
from vad_segmenter.SpeechSegmenter import SpeechSegmenter
from vad_segmenter.types import (
    OracleResult,
    SpeechEndEvent,
    SpeechStartEvent,
    VadResultEvent,
)

SAMPLE_RATE = 16000
FRAME_SIZE = 512
FRAME_SECONDS = FRAME_SIZE / SAMPLE_RATE  # 0.032


class ScriptedOracle:
    """Probability oracle replaying a fixed probability sequence.

    Call i returns probabilities[i] (default_probability past the end) and
    state + 1, so tests can tell a fresh zero state from a used one.
    Calls listed in fail_at raise RuntimeError instead.
    """

    def __init__(self, probabilities: Sequence[float] = (), fail_at: Iterable[int] = (),
                 default_probability: float = 0.0):
        self.probabilities: List[float] = list(probabilities)
        self.fail_at = set(fail_at)
        self.default_probability = default_probability
        self.calls = 0
        self.states_seen: List[np.ndarray] = []
        self.frames_seen: List[np.ndarray] = []
        self.closed = False

    def initial_state(self) -> np.ndarray:
        return np.zeros((2, 1, 128), dtype=np.float32)

    async def run(self, frame: np.ndarray, state: np.ndarray) -> OracleResult:
        index = self.calls
        self.calls += 1
        self.states_seen.append(state.copy())
        self.frames_seen.append(frame.copy())
        if index in self.fail_at:
            raise RuntimeError(f"inference failed on call {index}")
        if index < len(self.probabilities):
            probability = self.probabilities[index]
        else:
            probability = self.default_probability
        return OracleResult(probability=probability, state=state + 1.0)

    def close(self) -> None:
        self.closed = True


class GatedOracle(ScriptedOracle):
    """ScriptedOracle that holds each call until release is set.

    entered is set once a call is waiting on the gate.
    """

    def __init__(self, probabilities: Sequence[float] = (), **kwargs):
        super().__init__(probabilities, **kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def run(self, frame: np.ndarray, state: np.ndarray) -> OracleResult:
        self.entered.set()
        await self.release.wait()
        return await super().run(frame, state)


class SlowOracle(ScriptedOracle):
    """ScriptedOracle taking delay seconds per call."""

    def __init__(self, probabilities: Sequence[float] = (), delay: float = 0.05, **kwargs):
        super().__init__(probabilities, **kwargs)
        self.delay = delay

    async def run(self, frame: np.ndarray, state: np.ndarray) -> OracleResult:
        result = await super().run(frame, state)
        await asyncio.sleep(self.delay)
        return result


class RecordingSubscriber:
    """SpeechEventSubscriber collecting everything it receives, in order."""

    def __init__(self):
        self.events = []
        self.errors = []

    def on_speech_start(self, event: SpeechStartEvent) -> None:
        self.events.append(event)

    def on_speech_end(self, event: SpeechEndEvent) -> None:
        self.events.append(event)

    def on_vad_result(self, event: VadResultEvent) -> None:
        self.events.append(event)

    def on_error(self, error) -> None:
        self.errors.append(error)

    @property
    def starts(self) -> List[SpeechStartEvent]:
        return [e for e in self.events if isinstance(e, SpeechStartEvent)]

    @property
    def ends(self) -> List[SpeechEndEvent]:
        return [e for e in self.events if isinstance(e, SpeechEndEvent)]

    @property
    def results(self) -> List[VadResultEvent]:
        return [e for e in self.events if isinstance(e, VadResultEvent)]

    def kinds(self) -> List[str]:
        names = {SpeechStartEvent: 'start', SpeechEndEvent: 'end', VadResultEvent: 'result'}
        return [names[type(e)] for e in self.events]


def numbered_frame(index: int) -> np.ndarray:
    """Frame whose samples all equal its stream index, to identify it inside segments."""
    return np.full(FRAME_SIZE, float(index), dtype=np.float32)


def frame_indices(samples: np.ndarray) -> List[int]:
    """Stream indices of the numbered frames making up samples."""
    return [int(v) for v in samples[::FRAME_SIZE]]


async def feed_frames(segmenter: SpeechSegmenter, count: int, start_index: int = 0) -> None:
    """Enqueue count numbered frames (one frame per chunk) and wait for them."""
    for i in range(start_index, start_index + count):
        segmenter.enqueue(numbered_frame(i), i * FRAME_SECONDS)
    await segmenter.wait_for_queue_empty()


def run_frames(segmenter: SpeechSegmenter, count: int) -> None:
    asyncio.run(feed_frames(segmenter, count))


@pytest.fixture
def config():
    """Default segmentation config (0.3 / 0.25, 1400ms silence, 800ms pad, 400ms min)."""
    return VadConfig()


@pytest.fixture
def subscriber():
    return RecordingSubscriber()


@pytest.fixture
def make_segmenter(config, subscriber):
    """Factory: segmenter with a ScriptedOracle and a RecordingSubscriber attached."""
    def _make(probabilities=(), fail_at=(), default_probability=0.0, cfg=None):
        oracle = ScriptedOracle(probabilities, fail_at=fail_at, default_probability=default_probability)
        segmenter = SpeechSegmenter(cfg or config, oracle=oracle)
        segmenter.subscribe(subscriber)
        return segmenter, oracle
    return _make


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger after the test."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
