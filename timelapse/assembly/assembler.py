"""
Timelapse assembler.

Replays captured stills onto a canvas at a fixed output rate and encodes
the result into a single video. Output playback is independent of the
capture interval: M frames at 30fps always play for M/30 seconds.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence, Tuple

import numpy as np

from ..capture.frames import Frame
from ..errors import AssemblyError, EncoderError, FrameDecodeError, NoFramesError
from .encoder import VideoEncoder
from .video import AssembledVideo

logger = logging.getLogger(__name__)


class VideoAssembler:
    """
    Turns an ordered sequence of Frames into one encoded video.

    Pipeline:
        1. Decode the first frame to size the canvas
        2. For each frame: decode, draw at (0,0), emit one output frame,
           hold for 1/target_fps seconds
        3. Finalize the encoder

    Frames are drawn unscaled. If later frames differ in size from the
    first one they are clipped to the canvas, or leave the previous
    canvas contents visible where they do not reach.
    """

    def __init__(
        self,
        encoder_factory: Callable[[], VideoEncoder],
        target_fps: float = 30,
        realtime_pacing: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        preview_dir: Optional[str] = None,
    ):
        """
        Args:
            encoder_factory: Returns a fresh VideoEncoder per assembly
            target_fps: Output playback frame rate
            realtime_pacing: Hold each frame for one output-frame duration
            sleep: Awaitable used for the per-frame hold
            preview_dir: Where preview files are written (None = system temp)
        """
        if target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")

        self.encoder_factory = encoder_factory
        self.target_fps = target_fps
        self.realtime_pacing = realtime_pacing
        self._sleep = sleep
        self.preview_dir = preview_dir

    @property
    def frame_duration(self) -> float:
        return 1.0 / self.target_fps

    def expected_duration(self, frame_count: int) -> float:
        return frame_count / self.target_fps

    async def assemble(self, frames: Sequence[Frame]) -> AssembledVideo:
        """
        Encode ``frames`` into a video.

        This is slow by construction (one hold per frame when pacing is
        enabled) and must be awaited.

        Raises:
            NoFramesError: ``frames`` is empty
            FrameDecodeError: a frame's bytes are not a decodable image
            EncoderError: the encoder failed to open, write or finalize, or
                the preview file could not be written
        """
        if not frames:
            raise NoFramesError("No frames to process")

        started = time.monotonic()
        logger.info(f"Assembling video from {len(frames)} frames "
                    f"@ {self.target_fps}fps "
                    f"(expected {self.expected_duration(len(frames)):.2f}s)")

        first = frames[0].decode()
        if first is None:
            raise FrameDecodeError(0)

        height, width = first.shape[:2]
        canvas = np.zeros((height, width, 3), dtype=np.uint8)

        encoder = self.encoder_factory()
        finished = False
        try:
            encoder.open((width, height), self.target_fps)

            for index, frame in enumerate(frames):
                image = first if index == 0 else frame.decode()
                if image is None:
                    raise FrameDecodeError(index)

                self._draw(canvas, image)
                encoder.write(canvas)

                if self.realtime_pacing:
                    await self._sleep(self.frame_duration)
                else:
                    await self._sleep(0)

            encoded = encoder.finish()
            finished = True

        except AssemblyError as e:
            logger.error(f"Assembly aborted: {e}")
            raise
        except Exception as e:
            logger.error(f"Assembly aborted: encoder failure: {e}", exc_info=True)
            raise EncoderError(f"Failed to create video: {e}") from e
        finally:
            if not finished:
                encoder.abort()

        video = AssembledVideo(
            data=encoded.data,
            codec=encoded.codec,
            container=encoded.container,
            mime_type=encoded.mime_type,
            fps=self.target_fps,
            frame_count=len(frames),
            width=width,
            height=height,
        )
        try:
            video.write_preview(self.preview_dir)
        except OSError as e:
            logger.error(f"Assembly aborted: cannot write preview: {e}")
            raise EncoderError(f"Failed to write video preview: {e}") from e

        elapsed = time.monotonic() - started
        size_mb = video.size_bytes / (1024 * 1024)
        logger.info(f"Video assembled: {video.frame_count} frames, "
                    f"{video.duration:.2f}s, {width}x{height}, "
                    f"{size_mb:.2f}MB ({elapsed:.1f}s to encode)")
        return video

    @staticmethod
    def _draw(canvas: np.ndarray, image: np.ndarray) -> Tuple[int, int]:
        """Copy ``image`` onto ``canvas`` at (0,0) without scaling."""
        h = min(canvas.shape[0], image.shape[0])
        w = min(canvas.shape[1], image.shape[1])
        canvas[:h, :w] = image[:h, :w]
        return w, h
