"""
Capture module - live camera, capture clock, frame buffer and session.

Provides:
    CameraStream: Live camera with a background frame grabber
    CaptureClock: Re-arming capture timer on the event loop
    Frame, FrameBuffer: Captured stills in capture order
    SessionController: Start/stop state machine handing frames to assembly
"""

from .camera import CameraStream
from .clock import CaptureClock
from .frames import Frame, FrameBuffer
from .session import MIN_FRAMES, SessionController, SessionState

__all__ = [
    "CameraStream",
    "CaptureClock",
    "Frame",
    "FrameBuffer",
    "MIN_FRAMES",
    "SessionController",
    "SessionState",
]
