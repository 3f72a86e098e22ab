# vad_segmenter/sound/FileAudioSource.py
import logging
import numpy as np
import numpy.typing as npt
import soundfile as sf
from pathlib import Path
from scipy import signal
from typing import Iterator, Tuple


class FileAudioSource:
    """Reads an audio file as (chunk, timestamp) pairs for offline segmentation.

    Audio Loading Strategy:
    1. Load audio file using soundfile (float32)
    2. Convert to mono if stereo (first channel)
    3. Resample to the target sample rate with scipy if needed
    4. Split into chunk_size pieces; the last chunk is not padded

    Args:
        file_path: Path to an audio file readable by soundfile (WAV, FLAC, OGG)
        sample_rate: Target sample rate in Hz
        chunk_size: Samples per yielded chunk (need not match the inference frame size)
    """

    def __init__(self, file_path: Path | str, sample_rate: int = 16000, chunk_size: int = 1600):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.file_path = Path(file_path)
        self.sample_rate: int = sample_rate
        self.chunk_size: int = chunk_size
        self.audio: npt.NDArray[np.float32] = self._load_audio()

    def _load_audio(self) -> npt.NDArray[np.float32]:
        if not self.file_path.exists():
            raise FileNotFoundError(f"Audio file not found: {self.file_path}")

        audio, sr = sf.read(str(self.file_path), dtype='float32')

        if len(audio.shape) > 1:
            audio = audio[:, 0]

        if sr != self.sample_rate:
            num_samples = int(len(audio) * self.sample_rate / sr)
            audio = signal.resample(audio, num_samples).astype(np.float32)
            logging.info("Resampled %s from %d Hz to %d Hz", self.file_path.name, sr, self.sample_rate)

        return np.asarray(audio, dtype=np.float32)

    @property
    def duration(self) -> float:
        """Audio duration in seconds."""
        return len(self.audio) / self.sample_rate

    def chunks(self) -> Iterator[Tuple[npt.NDArray[np.float32], float]]:
        """Yield (samples, timestamp_seconds) in stream order."""
        for i in range(0, len(self.audio), self.chunk_size):
            yield self.audio[i:i + self.chunk_size], i / self.sample_rate
