# main.py
"""Segment an audio file into speech segments with Silero VAD.

Usage:
    python main.py recording.wav
    python main.py recording.wav --config config/vad_config.json --output-dir segments -v
"""
import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List

import soundfile as sf

from vad_segmenter import SpeechSegmenter, VadConfig, load_config
from vad_segmenter.LoggingSetup import setup_logging
from vad_segmenter.sound import FileAudioSource
from vad_segmenter.types import SpeechEndEvent, SpeechSegment
from vad_segmenter.vad import SileroOracle

APP_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG = APP_DIR / "config" / "vad_config.json"
LOGS_DIR = APP_DIR / "logs"


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Split an audio file into speech segments")
    parser.add_argument("input_file", type=Path, help="Audio file (WAV, FLAC, OGG)")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="VAD config JSON")
    parser.add_argument("--model", type=Path, default=None, help="Override Silero VAD model path")
    parser.add_argument("--output-dir", type=Path, default=None, help="Write each segment as a WAV file")
    parser.add_argument("--chunk-size", type=int, default=1600, help="Samples per input chunk")
    parser.add_argument("--logs-dir", type=Path, default=LOGS_DIR)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def write_segment(output_dir: Path, index: int, segment: SpeechSegment, sample_rate: int) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"segment_{index:04d}_{segment.start:.2f}-{segment.end:.2f}.wav"
    sf.write(str(path), segment.samples, sample_rate)
    return path


async def segment_file(args: argparse.Namespace, config: VadConfig) -> List[SpeechSegment]:
    model_path = args.model or Path(config.model_path)
    oracle = SileroOracle(model_path, sample_rate=config.sample_rate, verbose=args.verbose)
    segmenter = await SpeechSegmenter.create(config, oracle, verbose=args.verbose)

    segments: List[SpeechSegment] = []

    def on_event(event) -> None:
        if isinstance(event, SpeechEndEvent) and event.segment is not None:
            segment = event.segment
            segments.append(segment)
            logging.info("Segment %d: %.2fs - %.2fs (%.0fms, confidence %.2f)",
                         len(segments), segment.start, segment.end, segment.duration, segment.confidence)
            if args.output_dir is not None:
                path = write_segment(args.output_dir, len(segments), segment, config.sample_rate)
                logging.info("  written to %s", path)

    segmenter.events.subscribe_callback(on_event)

    source = FileAudioSource(args.input_file, sample_rate=config.sample_rate, chunk_size=args.chunk_size)
    logging.info("Processing %s (%.1fs)", args.input_file, source.duration)

    for samples, timestamp in source.chunks():
        segmenter.enqueue(samples, timestamp)
        # yield so the consumer task keeps pace with the reader
        await asyncio.sleep(0)

    await segmenter.flush_async(source.duration)
    await segmenter.close()
    return segments


def main(argv: List[str]) -> int:
    args = parse_args(argv)
    setup_logging(args.logs_dir, verbose=args.verbose)

    try:
        config = load_config(args.config)
        segments = asyncio.run(segment_file(args, config))
    except KeyboardInterrupt:
        logging.info("Interrupted by user.")
        return 0
    except Exception as e:
        logging.error("ERROR: %s: %s", type(e).__name__, e, exc_info=True)
        return 1

    logging.info("Done: %d speech segments", len(segments))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
