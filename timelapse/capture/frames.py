"""
Captured stills and the in-memory frame buffer.

A Frame is an opaque JPEG encoding of one camera image. Its position in
the buffer is its capture order.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """One captured still image."""
    data: bytes
    captured_at: float = 0.0

    @classmethod
    def from_image(cls, image: np.ndarray, captured_at: float = 0.0,
                   jpeg_quality: int = 90) -> Optional["Frame"]:
        """Encode a BGR image as JPEG. Returns None if encoding fails."""
        ok, buffer = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(jpeg_quality)]
        )
        if not ok:
            return None
        return cls(data=buffer.tobytes(), captured_at=captured_at)

    def decode(self) -> Optional[np.ndarray]:
        """Decode back to a BGR image, or None if the bytes are not an image."""
        if not self.data:
            return None
        array = np.frombuffer(self.data, dtype=np.uint8)
        return cv2.imdecode(array, cv2.IMREAD_COLOR)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class FrameBuffer:
    """
    Ordered frames of the current session.

    No size cap: a long session at a short interval is bounded only by
    available memory.
    """

    def __init__(self):
        self._frames: List[Frame] = []

    def append(self, frame: Frame) -> None:
        self._frames.append(frame)

    def clear(self) -> None:
        if self._frames:
            logger.debug(f"Frame buffer cleared ({len(self._frames)} frames)")
        self._frames = []

    def count(self) -> int:
        return len(self._frames)

    def snapshot(self) -> Tuple[Frame, ...]:
        """Immutable copy of the frames in capture order."""
        return tuple(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(list(self._frames))

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]
