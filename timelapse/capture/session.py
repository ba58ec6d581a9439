"""
Capture session controller.

State machine:
    IDLE -> RECORDING -> ASSEMBLING -> IDLE (video ready)
                                    -> IDLE (too few frames / assembly failed)

All transitions run on one asyncio event loop. The capture clock is the
only source of interleaving with a user-initiated stop(), and both the
clock and capture_frame() re-check the state when they run.
"""

import enum
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import (
    AssemblyError,
    DeviceNotReadyError,
    DeviceUnavailableError,
    InsufficientFramesError,
    SessionStateError,
    TimelapseError,
)
from .clock import CaptureClock
from .frames import Frame, FrameBuffer

if TYPE_CHECKING:
    from ..assembly import AssembledVideo, VideoAssembler
    from .camera import CameraStream

logger = logging.getLogger(__name__)

MIN_FRAMES = 4


class SessionState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    ASSEMBLING = "assembling"


class SessionController:
    """
    Orchestrates camera, capture clock, frame buffer and assembler.

    Owns the camera stream for its lifetime; close() (or leaving the
    ``async with`` block) releases it on every exit path.
    """

    def __init__(
        self,
        camera: Optional["CameraStream"],
        assembler: "VideoAssembler",
        interval: int = 1,
        min_frames: int = MIN_FRAMES,
        jpeg_quality: int = 90,
        clock: Optional[CaptureClock] = None,
        on_assembled: Optional[Callable[["AssembledVideo"], None]] = None,
        on_error: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Args:
            camera: Live camera stream (None = no device attached)
            assembler: Produces the video once recording stops
            interval: Seconds between captures (integer >= 1)
            min_frames: Fewest frames that will be assembled
            jpeg_quality: JPEG quality for captured stills
            clock: Capture clock (a new one bound to the running loop if None)
            on_assembled: Called with the video after a successful stop()
            on_error: Called with (kind, message) for every session error
        """
        self.camera = camera
        self.assembler = assembler
        self.min_frames = min_frames
        self.jpeg_quality = jpeg_quality
        self.clock = clock or CaptureClock()
        self.on_assembled = on_assembled
        self.on_error = on_error

        self.frames = FrameBuffer()
        self.video: Optional["AssembledVideo"] = None
        self.last_capture_at: Optional[float] = None
        self.dropped_frames = 0

        self._state = SessionState.IDLE
        self._interval = self._validate_interval(interval)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def recording(self) -> bool:
        return self._state is SessionState.RECORDING

    @property
    def interval(self) -> int:
        return self._interval

    @interval.setter
    def interval(self, value: int) -> None:
        if self._state is not SessionState.IDLE:
            raise SessionStateError("Interval can only be changed while idle")
        self._interval = self._validate_interval(value)
        logger.info(f"Capture interval set to {self._interval}s")

    @staticmethod
    def _validate_interval(value) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Interval must be a whole number of seconds, got {value!r}")
        if value < 1:
            raise ValueError(f"Interval must be at least 1 second, got {value}")
        return value

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Begin recording.

        Returns:
            False if a session is already active (nothing changes).

        Raises:
            DeviceUnavailableError: no camera stream attached
            DeviceNotReadyError: the stream has not delivered a frame yet
        """
        if self._state is not SessionState.IDLE:
            logger.warning(f"Start ignored: session is {self._state.value}")
            return False

        if self.camera is None or not self.camera.is_open:
            self._report(DeviceUnavailableError(
                "No video stream available. Please reconnect the camera and try again."
            ))
        if not self.camera.is_ready:
            self._report(DeviceNotReadyError(
                "Video is not ready. Please wait a moment and try again."
            ))

        self._discard_video()
        self.frames.clear()
        self.last_capture_at = None
        self.dropped_frames = 0

        logger.info(f"Starting recording with interval: {self._interval}s")
        self._state = SessionState.RECORDING
        try:
            self.clock.start(self._interval, self.capture_frame)
        except Exception as e:
            logger.error(f"Failed to arm capture clock: {e}")
            self.clock.stop()
            self.frames.clear()
            self._state = SessionState.IDLE
            raise
        return True

    def capture_frame(self) -> bool:
        """
        Snapshot the live camera frame into the buffer.

        Returns:
            True if a frame was appended.
        """
        if self._state is not SessionState.RECORDING:
            logger.debug("Capture skipped: not recording")
            return False

        image = self.camera.latest_frame() if self.camera is not None else None
        if image is None:
            self.dropped_frames += 1
            logger.info("Video not ready for capture, frame dropped")
            return False

        now = time.monotonic()
        if self.last_capture_at is not None:
            logger.debug(f"Time since last capture: {(now - self.last_capture_at) * 1000:.0f}ms")
        self.last_capture_at = now

        frame = Frame.from_image(image, captured_at=now, jpeg_quality=self.jpeg_quality)
        if frame is None:
            self.dropped_frames += 1
            logger.warning("Failed to encode captured frame, frame dropped")
            return False

        self.frames.append(frame)
        logger.info(f"Captured frame {self.frames.count()} ({frame.size_bytes / 1024:.0f}KB)")
        return True

    async def stop(self) -> Optional["AssembledVideo"]:
        """
        Stop recording and assemble the captured frames.

        Returns:
            The assembled video, or None if no session was recording.

        Raises:
            InsufficientFramesError: fewer than ``min_frames`` were captured
            AssemblyError: the assembler failed (no video is kept)
        """
        if self._state is not SessionState.RECORDING:
            return None

        self.clock.stop()
        self._state = SessionState.ASSEMBLING

        count = self.frames.count()
        logger.info(f"Recording stopped with {count} frame(s)")

        try:
            if count < self.min_frames:
                self._report(InsufficientFramesError(count, self.min_frames))

            try:
                video = await self.assembler.assemble(self.frames.snapshot())
            except TimelapseError as e:
                self._report(e)
            except Exception as e:
                self._report(AssemblyError(f"Failed to create video: {e}"))
        finally:
            self.frames.clear()
            self._state = SessionState.IDLE

        self.video = video
        if self.on_assembled is not None:
            self.on_assembled(video)
        return video

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Disarm the clock, drop buffered state and release the camera."""
        try:
            self.clock.stop()
            self.frames.clear()
            self._discard_video()
            if self._state is SessionState.RECORDING:
                self._state = SessionState.IDLE
        finally:
            if self.camera is not None:
                self.camera.release()

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------

    def _discard_video(self) -> None:
        if self.video is not None:
            self.video.discard()
            self.video = None

    def _report(self, error: TimelapseError) -> None:
        """Notify on_error, then raise ``error``."""
        logger.error(f"{error.kind}: {error}")
        if self.on_error is not None:
            self.on_error(error.kind, str(error))
        raise error
