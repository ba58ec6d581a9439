"""
Live camera stream.

Architecture:
    - A frame grabber thread reads the device continuously and keeps
      only the most recent frame (the "live picture")
    - Capture code snapshots that frame whenever the capture clock fires
    - The stream is ready once the first frame has been delivered

Supports OpenCV devices and picamera2 (Raspberry Pi).
"""

import cv2
import time
import threading
import logging
from typing import Optional, Tuple

import numpy as np

from ..errors import DeviceUnavailableError

logger = logging.getLogger(__name__)


class CameraStream:
    """
    Owns the camera device for the lifetime of a capture session.

    The device must be released on every exit path so the hardware lock
    is not leaked to other consumers.
    """

    def __init__(
        self,
        camera_index: int = 0,
        use_picamera: bool = False,
        resolution: Optional[Tuple[int, int]] = None,
        grab_fps: float = 15.0,
    ):
        """
        Initialize the camera stream (device is not opened yet).

        Args:
            camera_index: Camera device index for OpenCV
            use_picamera: Use picamera2 instead of OpenCV (for Raspberry Pi)
            resolution: Requested (width, height); None keeps the device default
            grab_fps: Rate at which the grabber refreshes the live frame
        """
        self.camera_index = camera_index
        self.use_picamera = use_picamera
        self.requested_resolution = resolution
        self.grab_fps = grab_fps

        # Actual resolution is read from the camera on open
        self.resolution: Tuple[int, int] = (0, 0)

        self.camera = None
        self.grabber_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._ready_event = threading.Event()
        self._lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self._latest_at: float = 0.0

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------

    def _init_camera_opencv(self) -> None:
        """Open camera using OpenCV and read resolution."""
        self.camera = cv2.VideoCapture(self.camera_index)

        if not self.camera.isOpened():
            self.camera.release()
            self.camera = None
            raise DeviceUnavailableError(f"Failed to open camera {self.camera_index}")

        if self.requested_resolution:
            width, height = self.requested_resolution
            self.camera.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self.camera.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        width = int(self.camera.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self.camera.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.resolution = (width, height)

        logger.info(f"Camera opened: {width}x{height}")

    def _init_camera_picamera(self) -> None:
        """Open camera using picamera2 (Raspberry Pi) and read resolution."""
        try:
            from picamera2 import Picamera2
        except ImportError as e:
            raise DeviceUnavailableError(f"picamera2 is not installed: {e}") from e

        self.camera = Picamera2()

        if self.requested_resolution:
            config = self.camera.create_video_configuration(
                main={"size": tuple(self.requested_resolution), "format": "BGR888"}
            )
        else:
            config = self.camera.create_video_configuration(main={"format": "BGR888"})
        self.camera.configure(config)

        width = config["main"]["size"][0]
        height = config["main"]["size"][1]
        self.resolution = (width, height)

        self.camera.start()
        logger.info(f"PiCamera started: {width}x{height}")

    def open(self) -> "CameraStream":
        """
        Open the device and start the frame grabber.

        Raises:
            DeviceUnavailableError: the device cannot be opened
        """
        if self.is_open:
            return self

        if self.use_picamera:
            self._init_camera_picamera()
        else:
            self._init_camera_opencv()

        self._stop_event.clear()
        self._ready_event.clear()
        self.grabber_thread = threading.Thread(
            target=self._frame_grabber_loop,
            daemon=True,
            name="FrameGrabber",
        )
        self.grabber_thread.start()
        return self

    def release(self) -> None:
        """Stop the grabber and release the device. Idempotent."""
        self._stop_event.set()

        if self.grabber_thread and self.grabber_thread.is_alive():
            self.grabber_thread.join(timeout=2.0)
        self.grabber_thread = None

        if self.camera is not None:
            if self.use_picamera:
                self.camera.stop()
                self.camera.close()
            else:
                self.camera.release()
            self.camera = None
            logger.info("Camera released")

        with self._lock:
            self._latest = None
        self._ready_event.clear()

    def __enter__(self) -> "CameraStream":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Live frame
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.camera is not None

    @property
    def is_ready(self) -> bool:
        """True once the device has delivered a first frame."""
        return self.is_open and self._ready_event.is_set()

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        return self._ready_event.wait(timeout)

    def latest_frame(self) -> Optional[np.ndarray]:
        """Copy of the most recent frame, or None if nothing is live."""
        with self._lock:
            if self._latest is None:
                return None
            return self._latest.copy()

    def _grab_frame(self) -> Optional[np.ndarray]:
        """Read a single frame from the device."""
        if self.use_picamera:
            return self.camera.capture_array()
        ret, frame = self.camera.read()
        if not ret:
            return None
        return frame

    def _frame_grabber_loop(self) -> None:
        """
        Continuously refresh the live frame.

        Runs in its own thread so device reads never block the event loop.
        """
        logger.info("Frame grabber started")

        frame_interval = 1.0 / self.grab_fps
        next_frame_time = time.time()
        failures = 0

        while not self._stop_event.is_set():
            try:
                frame = self._grab_frame()

                if frame is None:
                    failures += 1
                    if failures % 50 == 1:
                        logger.warning("Failed to grab frame")
                    time.sleep(frame_interval)
                    continue
                failures = 0

                with self._lock:
                    self._latest = frame
                    self._latest_at = time.time()
                if not self._ready_event.is_set():
                    h, w = frame.shape[:2]
                    logger.info(f"Camera ready: first frame {w}x{h}")
                    self._ready_event.set()

                next_frame_time += frame_interval
                sleep_time = next_frame_time - time.time()
                if sleep_time > 0:
                    time.sleep(sleep_time)
                else:
                    # Behind schedule, reset timing
                    next_frame_time = time.time()

            except Exception as e:
                if not self._stop_event.is_set():
                    logger.error(f"Frame grabber error: {e}")
                break

        # Grabber gone: no live frame from here on
        with self._lock:
            self._latest = None
        self._ready_event.clear()

        logger.info("Frame grabber stopped")
