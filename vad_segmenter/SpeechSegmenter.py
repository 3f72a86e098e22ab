# vad_segmenter/SpeechSegmenter.py
"""
Tests for this module:
- tests/test_speech_segmenter.py - Event flow, padding, flush levels, reset, close
- tests/test_speech_segmenter_errors.py - Lifecycle guards, oracle failures, config updates
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from .config import VadConfig
from .exceptions import NotInitializedError, OracleFailure
from .SpeechEventPublisher import SpeechEventPublisher
from .sound.AsyncProcessingQueue import AsyncProcessingQueue
from .sound.FrameReassembler import FrameReassembler
from .sound.PrePaddingBuffer import PrePaddingBuffer
from .sound.SegmentAssembler import SegmentAssembler
from .sound.SegmentationStateMachine import SegmentationStateMachine
from .types import (
    AudioFrame,
    SegmentationState,
    SpeechEndEvent,
    SpeechStartEvent,
    StepResult,
    VadResultEvent,
)

if TYPE_CHECKING:
    from .protocols import ProbabilityOracle, SpeechEventSubscriber


@dataclass
class _QueuedFrame:
    frame: AudioFrame
    waiter: Optional[asyncio.Future] = None


class SpeechSegmenter:
    """Turns an audio stream into speech-start / speech-end events with padded segments.

    Pipeline:
        chunk → FrameReassembler → AsyncProcessingQueue → oracle.run()
        → SegmentationStateMachine.step() → PrePaddingBuffer / SegmentAssembler
        → SpeechEventPublisher

    Concurrency:
    - enqueue() never blocks; frames are handled by a single consumer task
    - Exactly one oracle call → transition → emission cycle runs at a time
    - The oracle call is the only suspension point
    - reset() does not discard frames already queued; they still drain

    Oracle Failures:
    - Reported for that frame only (log, on_error subscribers, process() caller)
    - Recurrent state, buffers and the state machine are left untouched

    Args:
        config: VadConfig, or a mapping accepted by VadConfig.from_dict (None = defaults)
        oracle: Probability oracle; may also be supplied later to initialize()
        publisher: Event publisher (a new one is created when omitted)
        verbose: Enable debug logging
    """

    def __init__(self,
                 config: VadConfig | Mapping[str, Any] | None = None,
                 oracle: Optional['ProbabilityOracle'] = None,
                 publisher: Optional[SpeechEventPublisher] = None,
                 verbose: bool = False):

        if config is None:
            config = VadConfig()
        elif not isinstance(config, VadConfig):
            config = VadConfig.from_dict(config)
        self.config: VadConfig = config
        self.verbose: bool = verbose

        self.events: SpeechEventPublisher = publisher or SpeechEventPublisher(verbose=verbose)
        self.reassembler = FrameReassembler(config.inference_frame_size, config.sample_rate)
        self.buffer = PrePaddingBuffer(config.pre_speech_pad_duration_ms, config.sample_rate)
        self.assembler = SegmentAssembler(config.sample_rate, verbose=verbose)
        self.machine = SegmentationStateMachine(config, verbose=verbose)
        self.queue: AsyncProcessingQueue[_QueuedFrame] = AsyncProcessingQueue(
            self._process_frame, on_discard=self._discard_frame, name="SpeechSegmenter"
        )

        self._oracle: Optional['ProbabilityOracle'] = None
        self._recurrent_state: Optional[npt.NDArray[np.float32]] = None
        # bumped by reset(); results of an in-flight oracle call from an older generation are dropped
        self._generation: int = 0

        if oracle is not None:
            self.initialize(oracle)

    @classmethod
    async def create(cls, config: VadConfig | Mapping[str, Any] | None, oracle: 'ProbabilityOracle',
                     **kwargs) -> SpeechSegmenter:
        """Construct and initialize in one call (usable from async setup code)."""
        segmenter = cls(config=config, **kwargs)
        segmenter.initialize(oracle)
        return segmenter

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, oracle: Optional['ProbabilityOracle'] = None) -> None:
        """Attach the oracle and set the recurrent state to its zero value.

        Args:
            oracle: Oracle to use; defaults to the one given at construction

        Raises:
            NotInitializedError: If no oracle is available
        """
        if oracle is not None:
            self._oracle = oracle
        if self._oracle is None:
            raise NotInitializedError("SpeechSegmenter: no probability oracle supplied")
        self._recurrent_state = self._oracle.initial_state()
        logging.info("SpeechSegmenter initialized (frame=%d samples, %.0fms)",
                     self.config.inference_frame_size, self.config.frame_duration_ms)

    @property
    def is_initialized(self) -> bool:
        return self._oracle is not None and self._recurrent_state is not None

    async def close(self) -> None:
        """Flush the open utterance, stop the queue, release the oracle, clear buffers.

        Subscribers receive the final speech-end (if any) before being removed.
        Frames still queued or in flight are dropped; process() callers waiting
        on them get NotInitializedError, and flush_async() / wait_for_queue_empty()
        callers return.
        """
        self.flush()
        await self.queue.close()
        if self._oracle is not None:
            close = getattr(self._oracle, 'close', None)
            if callable(close):
                close()
        self._oracle = None
        self._recurrent_state = None
        self.buffer.clear()
        self.reassembler.reset()
        self.machine.reset()
        self.events.clear()
        logging.info("SpeechSegmenter closed")

    def reset(self) -> None:
        """Return to SILENCE with empty buffers and a zero recurrent state.

        Idempotent. Frames already queued are not discarded and will be
        processed against the fresh state.
        """
        self._generation += 1
        self.machine.reset()
        self.buffer.clear()
        self.reassembler.reset()
        if self._oracle is not None:
            self._recurrent_state = self._oracle.initial_state()
        if self.verbose:
            logging.debug("SpeechSegmenter: reset (queued frames: %d)", self.queue.depth)

    def update_config(self, overrides: VadConfig | Mapping[str, Any]) -> None:
        """Apply new options at runtime.

        Raises:
            ConfigurationError: On invalid options; the previous config stays in effect
        """
        if isinstance(overrides, VadConfig):
            new_config = overrides
        else:
            new_config = self.config.merged(overrides)

        self.config = new_config
        self.machine.update_config(new_config)
        self.buffer.pre_pad_ms = new_config.pre_speech_pad_duration_ms
        self.buffer.sample_rate = new_config.sample_rate
        self.assembler.sample_rate = new_config.sample_rate
        # remainder samples are kept; the next push cuts frames of the new size
        self.reassembler.frame_size = new_config.inference_frame_size
        self.reassembler.sample_rate = new_config.sample_rate
        if self.verbose:
            logging.debug("SpeechSegmenter: config updated: %s", new_config)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, subscriber: 'SpeechEventSubscriber') -> None:
        self.events.subscribe(subscriber)

    def unsubscribe(self, subscriber: 'SpeechEventSubscriber') -> None:
        self.events.unsubscribe(subscriber)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SegmentationState:
        return self.machine.state

    @property
    def is_speech_active(self) -> bool:
        return self.machine.is_speech_active

    @property
    def queue_length(self) -> int:
        """Frames queued or in flight."""
        return self.queue.depth

    @property
    def recurrent_state(self) -> Optional[npt.NDArray[np.float32]]:
        return self._recurrent_state

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def enqueue(self, samples: npt.ArrayLike, timestamp: float) -> int:
        """Cut chunk into frames and queue them without blocking.

        Must be called from the event loop thread.

        Args:
            samples: Mono float samples in [-1, 1], any length
            timestamp: Time of the chunk's first sample in seconds

        Returns:
            Number of frames queued

        Raises:
            NotInitializedError: Before initialize(); nothing is buffered
        """
        self._require_initialized()
        if not self.config.enabled:
            return 0
        frames = self.reassembler.push(samples, timestamp)
        for frame in frames:
            self.queue.enqueue(_QueuedFrame(frame))
        return len(frames)

    async def process(self, samples: npt.ArrayLike, timestamp: float) -> dict:
        """Queue chunk and wait for its frames to be processed.

        Returns:
            Dict with 'is_speech' (state after the last frame) and 'probability'
            (mean over the chunk's frames, or the last known probability when
            the chunk completed no frame)

        Raises:
            NotInitializedError: Before initialize()
            OracleFailure: If the oracle failed for one of the chunk's frames
        """
        self._require_initialized()
        if not self.config.enabled:
            return {'is_speech': False, 'probability': 0.0}

        loop = asyncio.get_running_loop()
        waiters = []
        for frame in self.reassembler.push(samples, timestamp):
            waiter = loop.create_future()
            waiters.append(waiter)
            self.queue.enqueue(_QueuedFrame(frame, waiter))

        if not waiters:
            return {
                'is_speech': self.is_speech_active,
                'probability': self.machine.context.last_probability
            }

        probabilities = await asyncio.gather(*waiters)
        return {
            'is_speech': self.is_speech_active,
            'probability': float(np.mean(probabilities))
        }

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def flush(self, timestamp: float | None = None) -> None:
        """Force-finish the open utterance now, without waiting for queued frames.

        SPEAKING / POTENTIAL_END emit speech-end with the last known probability.
        POTENTIAL_START is discarded silently.

        Args:
            timestamp: End time override in seconds
        """
        step = self.machine.force_end(timestamp)
        if step.ended:
            self._finalize(step, self.machine.context.last_probability)
        elif step.aborted:
            self.buffer.clear_speech_anchor()
        if self.verbose:
            logging.debug("SpeechSegmenter: flush()")

    async def flush_async(self, timestamp: float | None = None) -> None:
        """Drain the queue, then flush."""
        self._require_initialized()
        await self.queue.drain()
        self.flush(timestamp)

    async def wait_for_queue_empty(self) -> None:
        await self.queue.drain()

    # ------------------------------------------------------------------
    # Frame processing (runs on the queue's consumer task)
    # ------------------------------------------------------------------

    async def _process_frame(self, item: _QueuedFrame) -> None:
        """One oracle call → transition → emission cycle.

        Algorithm:
        1. Run the oracle with the current recurrent state.
        2. On failure: report OracleFailure for this frame, mutate nothing.
        3. Store the new recurrent state, buffer the frame (pruning only in SILENCE).
        4. Step the state machine and apply buffer anchoring / segment assembly.
        5. Emit speech-start / speech-end, then vad-result.
        """
        frame, waiter = item.frame, item.waiter
        oracle = self._oracle
        if oracle is None or self._recurrent_state is None:
            error = NotInitializedError("SpeechSegmenter: oracle released before frame was processed")
            self._fail_waiter(waiter, error)
            raise error

        generation = self._generation
        try:
            result = await oracle.run(frame.samples, self._recurrent_state)
        except Exception as e:
            failure = OracleFailure(
                f"Oracle failed for frame at {frame.timestamp:.3f}s: {e}",
                frame_timestamp=frame.timestamp
            )
            failure.__cause__ = e
            logging.exception("SpeechSegmenter: oracle failure at %.3fs", frame.timestamp)
            self.events.publish_error(failure)
            self._fail_waiter(waiter, failure)
            return

        if generation != self._generation or self._oracle is None:
            if self.verbose:
                logging.debug("SpeechSegmenter: dropping result of frame at %.3fs (reset during inference)",
                              frame.timestamp)
            self._resolve_waiter(waiter, float(result.probability))
            return

        self._recurrent_state = result.state
        probability = float(result.probability)

        self.buffer.append(frame, prune=self.machine.state == SegmentationState.SILENCE)
        step = self.machine.step(probability, frame.timestamp)

        if step.potential_start:
            self.buffer.mark_speech_start()
        if step.aborted:
            self.buffer.clear_speech_anchor()
        if step.started:
            self.buffer.fix_cut_index()
            self.events.publish(SpeechStartEvent(timestamp=step.start_timestamp, probability=probability))
        if step.ended:
            self._finalize(step, probability)
        elif step.is_speech:
            self._check_max_segment_duration(frame, probability)

        self.events.publish(VadResultEvent(
            is_speech=self.machine.is_speech_active,
            probability=probability,
            timestamp=frame.timestamp
        ))
        self._resolve_waiter(waiter, probability)

    def _finalize(self, step: StepResult, probability: float) -> None:
        """Assemble the segment (if long enough), emit speech-end, prune the buffer."""
        segment = None
        if step.include_segment:
            segment = self.assembler.assemble(self.buffer.frames_from_cut(), step.end_timestamp, probability)
        self.events.publish(SpeechEndEvent(timestamp=step.end_timestamp, probability=probability, segment=segment))
        self.buffer.prune_to_retention()

    def _check_max_segment_duration(self, frame: AudioFrame, probability: float) -> None:
        """Force a speech-end when buffered speech exceeds max_segment_duration_ms."""
        max_ms = self.config.max_segment_duration_ms
        cut_index = self.buffer.cut_index
        if max_ms is None or cut_index is None:
            return
        buffered_ms = (len(self.buffer) - cut_index) * len(frame) / self.config.sample_rate * 1000.0
        if buffered_ms >= max_ms:
            end_time = frame.timestamp + len(frame) / self.config.sample_rate
            logging.warning("SpeechSegmenter: segment reached %.0fms, forcing speech end", buffered_ms)
            self._finalize(self.machine.force_end(end_time), probability)

    def _discard_frame(self, item: _QueuedFrame) -> None:
        self._fail_waiter(item.waiter, NotInitializedError(
            f"SpeechSegmenter closed before frame at {item.frame.timestamp:.3f}s was processed"
        ))

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError("SpeechSegmenter not initialized. Call initialize() first.")

    @staticmethod
    def _resolve_waiter(waiter: Optional[asyncio.Future], probability: float) -> None:
        if waiter is not None and not waiter.done():
            waiter.set_result(probability)

    @staticmethod
    def _fail_waiter(waiter: Optional[asyncio.Future], error: Exception) -> None:
        if waiter is not None and not waiter.done():
            waiter.set_exception(error)
