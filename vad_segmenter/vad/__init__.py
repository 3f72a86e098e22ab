"""VAD subsystem - neural speech probability oracles."""
from vad_segmenter.vad.SileroOracle import SileroOracle

__all__ = ['SileroOracle']
