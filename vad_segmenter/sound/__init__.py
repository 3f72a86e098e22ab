"""Sound subsystem - framing, buffering and segmentation."""
from vad_segmenter.sound.FrameReassembler import FrameReassembler
from vad_segmenter.sound.PrePaddingBuffer import PrePaddingBuffer
from vad_segmenter.sound.SegmentAssembler import SegmentAssembler
from vad_segmenter.sound.SegmentationStateMachine import SegmentationStateMachine
from vad_segmenter.sound.AsyncProcessingQueue import AsyncProcessingQueue
from vad_segmenter.sound.FileAudioSource import FileAudioSource

__all__ = [
    'FrameReassembler',
    'PrePaddingBuffer',
    'SegmentAssembler',
    'SegmentationStateMachine',
    'AsyncProcessingQueue',
    'FileAudioSource'
]
