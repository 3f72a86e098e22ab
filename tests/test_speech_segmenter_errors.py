"""Tests for SpeechSegmenter lifecycle guards, oracle failures and config updates."""

import asyncio
import logging
import numpy as np
import pytest
from unittest.mock import Mock

from vad_segmenter.config import VadConfig
from vad_segmenter.exceptions import ConfigurationError, NotInitializedError, OracleFailure
from vad_segmenter.SpeechSegmenter import SpeechSegmenter
from vad_segmenter.types import SegmentationState

from conftest import FRAME_SECONDS, FRAME_SIZE, ScriptedOracle, SlowOracle, feed_frames, run_frames


class TestNotInitialized:

    def test_enqueue_before_initialize_raises_without_buffering(self, config):
        segmenter = SpeechSegmenter(config)

        with pytest.raises(NotInitializedError):
            segmenter.enqueue(np.zeros(700, dtype=np.float32), 0.0)

        assert segmenter.reassembler.pending_samples == 0
        assert segmenter.queue_length == 0

    def test_process_before_initialize_raises(self, config):
        segmenter = SpeechSegmenter(config)

        with pytest.raises(NotInitializedError):
            asyncio.run(segmenter.process(np.zeros(FRAME_SIZE, dtype=np.float32), 0.0))

    def test_flush_async_before_initialize_raises(self, config):
        segmenter = SpeechSegmenter(config)

        with pytest.raises(NotInitializedError):
            asyncio.run(segmenter.flush_async())

    def test_initialize_without_oracle_raises(self, config):
        segmenter = SpeechSegmenter(config)

        with pytest.raises(NotInitializedError):
            segmenter.initialize()

    def test_enqueue_after_close_raises(self, make_segmenter):
        segmenter, _ = make_segmenter()

        asyncio.run(segmenter.close())

        with pytest.raises(NotInitializedError):
            segmenter.enqueue(np.zeros(FRAME_SIZE, dtype=np.float32), 0.0)

    def test_late_initialize_enables_processing(self, config):
        segmenter = SpeechSegmenter(config)
        oracle = ScriptedOracle([0.1] * 3)

        segmenter.initialize(oracle)
        run_frames(segmenter, 3)

        assert oracle.calls == 3


class TestOracleFailure:

    def test_failure_is_reported_for_that_frame_only(self, make_segmenter, subscriber):
        segmenter, oracle = make_segmenter([0.1] * 10, fail_at={5})

        run_frames(segmenter, 10)

        assert len(subscriber.errors) == 1
        error = subscriber.errors[0]
        assert isinstance(error, OracleFailure)
        assert error.frame_timestamp == pytest.approx(5 * FRAME_SECONDS)
        assert isinstance(error.__cause__, RuntimeError)
        # later frames continue
        assert oracle.calls == 10
        assert len(subscriber.results) == 9
        assert all(r.timestamp != pytest.approx(5 * FRAME_SECONDS) for r in subscriber.results)

    def test_failure_leaves_recurrent_state_and_buffer_unchanged(self, make_segmenter):
        segmenter, oracle = make_segmenter([0.1] * 10, fail_at={5})

        run_frames(segmenter, 10)

        # frame 6 sees the state produced by frame 4 (5 successful calls, 0..4)
        assert np.all(oracle.states_seen[5] == 5.0)
        assert np.all(oracle.states_seen[6] == 5.0)
        assert len(segmenter.buffer) == 9
        assert 5 not in [int(f.samples[0]) for f in segmenter.buffer.frames]

    def test_failure_does_not_advance_state_machine(self, make_segmenter, subscriber):
        """A failed frame in the middle of a potential start neither counts nor aborts."""
        segmenter, _ = make_segmenter([0.9] * 14, fail_at={3})

        run_frames(segmenter, 14)

        # 13 successful 0.9 frames are needed; the 14th frame completes them
        assert len(subscriber.starts) == 1
        assert subscriber.starts[0].timestamp == pytest.approx(0.0)
        assert segmenter.state == SegmentationState.SPEAKING

    def test_failure_is_logged(self, make_segmenter, caplog):
        segmenter, _ = make_segmenter([0.1] * 3, fail_at={1})

        with caplog.at_level(logging.ERROR):
            run_frames(segmenter, 3)

        assert any("oracle failure" in r.getMessage() for r in caplog.records)

    def test_process_raises_oracle_failure(self, make_segmenter):
        segmenter, _ = make_segmenter([0.1], fail_at={0})

        with pytest.raises(OracleFailure):
            asyncio.run(segmenter.process(np.zeros(FRAME_SIZE, dtype=np.float32), 0.0))

    def test_failing_subscriber_does_not_stop_processing(self, make_segmenter, subscriber):
        segmenter, oracle = make_segmenter([0.9] * 13)
        broken = Mock()
        broken.on_vad_result.side_effect = RuntimeError("subscriber bug")
        broken.on_speech_start.side_effect = RuntimeError("subscriber bug")
        segmenter.events.subscribe(broken)

        run_frames(segmenter, 13)

        assert oracle.calls == 13
        assert len(subscriber.starts) == 1
        assert len(subscriber.results) == 13


class TestUpdateConfig:

    def test_invalid_update_keeps_previous_config(self, make_segmenter):
        segmenter, _ = make_segmenter()
        before = segmenter.config

        with pytest.raises(ConfigurationError):
            segmenter.update_config({'negativeSpeechThreshold': 0.5})

        assert segmenter.config is before
        assert segmenter.machine.config is before

    def test_unknown_option_rejected(self, make_segmenter):
        segmenter, _ = make_segmenter()

        with pytest.raises(ConfigurationError):
            segmenter.update_config({'threshold': 0.5})

    def test_update_applies_to_following_frames(self, make_segmenter, subscriber):
        segmenter, _ = make_segmenter([0.9] * 4)

        segmenter.update_config({'minSpeechDuration': 100})
        run_frames(segmenter, 4)

        # 4 x 32ms = 128ms >= 100ms
        assert len(subscriber.starts) == 1
        assert segmenter.buffer.pre_pad_ms == 800

    def test_update_pre_padding(self, make_segmenter):
        segmenter, _ = make_segmenter()

        segmenter.update_config({'preSpeechPadDuration': 320})

        assert segmenter.buffer.pre_pad_ms == 320
        assert segmenter.config.pre_speech_pad_duration_ms == 320

    def test_update_frame_size_keeps_remainder(self, make_segmenter):
        segmenter, oracle = make_segmenter([0.1] * 10)

        async def scenario():
            segmenter.enqueue(np.zeros(300, dtype=np.float32), 0.0)
            segmenter.update_config({'inferenceFrameSize': 256})
            segmenter.enqueue(np.zeros(212, dtype=np.float32), 300 / 16000)
            await segmenter.wait_for_queue_empty()

        asyncio.run(scenario())

        # 512 samples at 256 per frame
        assert [len(f) for f in oracle.frames_seen] == [256, 256]
        assert segmenter.reassembler.pending_samples == 0

    def test_accepts_vad_config_instance(self, make_segmenter):
        segmenter, _ = make_segmenter()
        new_config = VadConfig(silence_duration_ms=600)

        segmenter.update_config(new_config)

        assert segmenter.config is new_config
        assert segmenter.machine.config is new_config


class TestCloseWithPendingWork:

    def test_pending_process_fails_instead_of_hanging(self, config):
        oracle = SlowOracle([0.1] * 4)
        segmenter = SpeechSegmenter(config, oracle=oracle)

        async def scenario():
            pending = asyncio.ensure_future(
                segmenter.process(np.zeros(4 * FRAME_SIZE, dtype=np.float32), 0.0)
            )
            # let the consumer start on the first frame
            await asyncio.sleep(0.01)
            await segmenter.close()
            return await asyncio.wait_for(pending, 1.0)

        with pytest.raises(NotInitializedError):
            asyncio.run(scenario())

        assert oracle.calls == 1

    def test_pending_flush_async_returns(self, config, subscriber):
        oracle = SlowOracle([0.1] * 4)
        segmenter = SpeechSegmenter(config, oracle=oracle)
        segmenter.subscribe(subscriber)

        async def scenario():
            for i in range(4):
                segmenter.enqueue(np.zeros(FRAME_SIZE, dtype=np.float32), i * FRAME_SECONDS)
            pending = asyncio.ensure_future(segmenter.flush_async())
            waiting = asyncio.ensure_future(segmenter.wait_for_queue_empty())
            await asyncio.sleep(0.01)
            await segmenter.close()
            await asyncio.wait_for(asyncio.gather(pending, waiting), 1.0)

        asyncio.run(scenario())

        assert segmenter.queue_length == 0
        assert subscriber.results == []


def test_close_discards_queue_and_is_safe_to_repeat(make_segmenter):
    segmenter, oracle = make_segmenter([0.1] * 5)

    async def scenario():
        await feed_frames(segmenter, 2)
        await segmenter.close()
        await segmenter.close()

    asyncio.run(scenario())

    assert oracle.closed
    assert segmenter.queue_length == 0
