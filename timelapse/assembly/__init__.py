"""
Assembly module - frames to video.

Provides:
    VideoAssembler: Replays frames at a fixed rate into an encoder
    AssembledVideo: Encoded result with a transient preview file
    VideoEncoder: Encoder interface
    OpenCVEncoder: cv2.VideoWriter-backed encoder with codec fallback
"""

from .assembler import VideoAssembler
from .encoder import DEFAULT_CODECS, EncodedVideo, OpenCVEncoder, VideoEncoder
from .video import AssembledVideo

__all__ = [
    "VideoAssembler",
    "AssembledVideo",
    "VideoEncoder",
    "OpenCVEncoder",
    "EncodedVideo",
    "DEFAULT_CODECS",
]
