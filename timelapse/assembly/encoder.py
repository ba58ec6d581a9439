"""
Video encoders.

The assembler only talks to the VideoEncoder interface, so tests can
inject an in-memory fake. OpenCVEncoder is the production encoder: it
writes through cv2.VideoWriter into a temporary file and returns the
finished container bytes.
"""

import cv2
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..errors import EncoderError

logger = logging.getLogger(__name__)


# Tried in order; the first one the local OpenCV build can open wins.
DEFAULT_CODECS: List[Tuple[str, str]] = [
    ("VP90", "webm"),
    ("VP80", "webm"),
    ("avc1", "mp4"),
    ("mp4v", "mp4"),
]

CONTAINER_MIME_TYPES = {
    "webm": "video/webm",
    "mp4": "video/mp4",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
}

CODEC_NAMES = {
    "VP90": "vp9",
    "VP80": "vp8",
    "avc1": "avc1",
    "H264": "h264",
    "mp4v": "mp4v",
    "MJPG": "mjpeg",
}


def mime_type_for(fourcc: str, container: str) -> str:
    """e.g. ("VP90", "webm") -> "video/webm; codecs=vp9"."""
    base = CONTAINER_MIME_TYPES.get(container, "application/octet-stream")
    codec = CODEC_NAMES.get(fourcc)
    return f"{base}; codecs={codec}" if codec else base


@dataclass
class EncodedVideo:
    """Finished container bytes plus what was used to produce them."""
    data: bytes
    codec: str
    container: str
    frames_written: int

    @property
    def mime_type(self) -> str:
        return mime_type_for(self.codec, self.container)


class VideoEncoder:
    """
    Streaming encoder interface.

    Lifecycle: open() -> write() per output frame -> finish(). abort()
    discards partial state and may be called at any point, repeatedly.
    """

    def open(self, size: Tuple[int, int], fps: float) -> None:
        raise NotImplementedError

    def write(self, image: np.ndarray) -> None:
        raise NotImplementedError

    def finish(self) -> EncodedVideo:
        raise NotImplementedError

    def abort(self) -> None:
        raise NotImplementedError


class OpenCVEncoder(VideoEncoder):
    """Encoder backed by cv2.VideoWriter."""

    def __init__(self, codecs: Optional[Sequence[Sequence[str]]] = None,
                 work_dir: Optional[str] = None):
        """
        Args:
            codecs: Candidate (fourcc, extension) pairs in preference order
            work_dir: Directory for the temporary container file
        """
        self.codecs = [tuple(c) for c in (codecs or DEFAULT_CODECS)]
        self.work_dir = work_dir

        self._writer: Optional[cv2.VideoWriter] = None
        self._path: Optional[Path] = None
        self._codec: Optional[Tuple[str, str]] = None
        self._size: Tuple[int, int] = (0, 0)
        self._frames_written = 0

    def _temp_path(self, extension: str) -> Path:
        fd, name = tempfile.mkstemp(prefix="timelapse_", suffix=f".{extension}",
                                    dir=self.work_dir)
        os.close(fd)
        return Path(name)

    def open(self, size: Tuple[int, int], fps: float) -> None:
        if self._writer is not None:
            raise EncoderError("Encoder already open")

        width, height = size
        if width <= 0 or height <= 0:
            raise EncoderError(f"Invalid frame size {width}x{height}")

        for fourcc_str, extension in self.codecs:
            path = self._temp_path(extension)
            fourcc = cv2.VideoWriter_fourcc(*fourcc_str)
            try:
                writer = cv2.VideoWriter(str(path), fourcc, float(fps), (width, height))
            except cv2.error as e:
                path.unlink(missing_ok=True)
                logger.debug(f"Codec {fourcc_str}/{extension} rejected: {e}")
                continue

            if writer.isOpened():
                self._writer = writer
                self._path = path
                self._codec = (fourcc_str, extension)
                self._size = (width, height)
                self._frames_written = 0
                logger.info(f"Encoder opened: {fourcc_str}/{extension} "
                            f"{width}x{height} @ {fps}fps")
                return

            writer.release()
            path.unlink(missing_ok=True)
            logger.debug(f"Codec {fourcc_str}/{extension} not supported")

        tried = ", ".join(f"{c}/{e}" for c, e in self.codecs)
        raise EncoderError(f"No supported codec available (tried {tried})")

    def write(self, image: np.ndarray) -> None:
        if self._writer is None:
            raise EncoderError("Encoder is not open")

        height, width = image.shape[:2]
        if (width, height) != self._size:
            raise EncoderError(
                f"Frame size {width}x{height} does not match encoder "
                f"{self._size[0]}x{self._size[1]}"
            )

        try:
            self._writer.write(image)
        except cv2.error as e:
            raise EncoderError(f"Failed to encode frame: {e}") from e
        self._frames_written += 1

    def finish(self) -> EncodedVideo:
        if self._writer is None:
            raise EncoderError("Encoder is not open")

        try:
            self._writer.release()
            self._writer = None

            data = self._path.read_bytes() if self._path.exists() else b""
            if not data:
                raise EncoderError("Encoder produced no output")

            fourcc, extension = self._codec
            size_mb = len(data) / (1024 * 1024)
            logger.info(f"Encoder finished: {self._frames_written} frames, {size_mb:.2f}MB")

            return EncodedVideo(
                data=data,
                codec=fourcc,
                container=extension,
                frames_written=self._frames_written,
            )
        finally:
            self.abort()

    def abort(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None
