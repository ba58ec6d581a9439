"""Assembled timelapse video."""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class AssembledVideo:
    """
    Encoded video produced from one completed session.

    ``preview_path`` is a transient local copy for immediate playback;
    call discard() once the video is no longer needed.
    """
    data: bytes
    codec: str
    container: str
    mime_type: str
    fps: float
    frame_count: int
    width: int
    height: int
    preview_path: Optional[Path] = None

    @property
    def duration(self) -> float:
        """Playback length in seconds."""
        return self.frame_count / self.fps

    @property
    def filename(self) -> str:
        return f"timelapse.{self.container}"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def write_preview(self, directory: Optional[str] = None) -> Path:
        """Write the bytes to a temporary file and remember its path."""
        if self.preview_path is not None and self.preview_path.exists():
            return self.preview_path

        with tempfile.NamedTemporaryFile(prefix="timelapse_preview_",
                                         suffix=f".{self.container}",
                                         dir=directory, delete=False) as f:
            f.write(self.data)
        self.preview_path = Path(f.name)
        return self.preview_path

    def discard(self) -> None:
        """Remove the preview file. Safe to call repeatedly."""
        if self.preview_path is not None:
            self.preview_path.unlink(missing_ok=True)
            logger.debug(f"Discarded preview {self.preview_path.name}")
            self.preview_path = None
