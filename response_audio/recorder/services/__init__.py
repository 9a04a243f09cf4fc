"""Service layer for the response recorder."""

from .assembler import RecordingCallback, RecordingResultAssembler
from .capture_session import CaptureSession, StreamFactory
from .chunk_buffer import ChunkBuffer
from .post_processor import PostProcessor
from .wav_encoder import WavEncoder, decode_wav16_mono, encode_wav16_mono

__all__ = [
    "CaptureSession",
    "ChunkBuffer",
    "PostProcessor",
    "RecordingCallback",
    "RecordingResultAssembler",
    "StreamFactory",
    "WavEncoder",
    "decode_wav16_mono",
    "encode_wav16_mono",
]
