# vad_segmenter/vad/SileroOracle.py
import asyncio
import logging
import onnxruntime
import numpy as np
import numpy.typing as npt
from pathlib import Path
from typing import Optional

from ..types import OracleResult

# Silero v5 recurrent state: (2, batch_size, 128)
STATE_SHAPE = (2, 1, 128)


class SileroOracle:
    """Speech probability oracle backed by the Silero VAD ONNX model.

    Stateless between calls: the recurrent state is passed in by the caller
    and the updated state is returned, so one session can serve any number
    of independent streams. Inference runs in a worker thread to keep the
    event loop responsive.

    Args:
        model_path: Path to the Silero VAD ONNX model file
        sample_rate: Sample rate of the frames (8000 or 16000)
        verbose: Enable debug logging
    """

    def __init__(self, model_path: Path | str, sample_rate: int = 16000, verbose: bool = False):
        self.model_path = Path(model_path)
        self.sample_rate: int = sample_rate
        self.verbose: bool = verbose

        self.model: Optional[onnxruntime.InferenceSession] = None
        self._load_model()

    def _load_model(self) -> None:
        """Load Silero VAD ONNX model with single-threaded CPU session options."""
        if not self.model_path.exists():
            raise FileNotFoundError(
                f"Silero VAD model not found at {self.model_path}. "
                f"Run 'python download_model.py' to download it."
            )

        try:
            sess_options = onnxruntime.SessionOptions()
            sess_options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL
            sess_options.intra_op_num_threads = 1  # Single thread for small model
            sess_options.inter_op_num_threads = 1

            self.model = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options=sess_options,
                providers=['CPUExecutionProvider']
            )
            # Cached to avoid an allocation per frame
            self.sr_input = np.array([self.sample_rate], dtype=np.int64)
        except Exception as e:
            raise RuntimeError(f"Failed to load Silero VAD ONNX model: {e}") from e

        logging.info("Silero VAD model loaded from %s", self.model_path)

    def initial_state(self) -> npt.NDArray[np.float32]:
        return np.zeros(STATE_SHAPE, dtype=np.float32)

    def infer(self, frame: npt.NDArray[np.float32], state: npt.NDArray[np.float32]) -> OracleResult:
        """Blocking inference for one frame.

        Args:
            frame: Audio frame as float32 array
            state: Recurrent state from the previous frame

        Returns:
            OracleResult with speech probability and the next state

        Raises:
            RuntimeError: If the model has been closed
        """
        if self.model is None:
            raise RuntimeError("SileroOracle is closed")

        if frame.dtype != np.float32:
            frame = frame.astype(np.float32)
        audio_input = frame.reshape(1, -1)

        ort_outputs = self.model.run(
            None,
            {
                'input': audio_input,
                'state': state,
                'sr': self.sr_input
            }
        )

        probability = float(ort_outputs[0][0][0])  # Shape: [1, 1]
        if self.verbose:
            logging.debug("SileroOracle: p=%.3f", probability)
        return OracleResult(probability=probability, state=ort_outputs[1])

    async def run(self, frame: npt.NDArray[np.float32], state: npt.NDArray[np.float32]) -> OracleResult:
        return await asyncio.to_thread(self.infer, frame, state)

    def close(self) -> None:
        """Release the inference session."""
        self.model = None
