"""Shared pytest fixtures: fake scheduler, camera and encoder."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from timelapse.assembly import AssembledVideo, EncodedVideo, VideoAssembler, VideoEncoder
from timelapse.capture import CaptureClock, Frame


# =============================================================================
# Scheduling
# =============================================================================

class FakeTimerHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Manually advanced stand-in for the event loop's call_later."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, lambda: callback(*args))
        self.timers.append(handle)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.timers if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.timers.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target

    @property
    def pending(self):
        return [h for h in self.timers if not h.cancelled]


# =============================================================================
# Images and frames
# =============================================================================

def make_image(width=64, height=48, color=(0, 128, 255)):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


def make_frame(width=64, height=48, color=(0, 128, 255), captured_at=0.0):
    frame = Frame.from_image(make_image(width, height, color), captured_at=captured_at)
    assert frame is not None
    return frame


def make_video(data=b"video-bytes", frame_count=120, fps=30):
    return AssembledVideo(
        data=data,
        codec="VP90",
        container="webm",
        mime_type="video/webm; codecs=vp9",
        fps=fps,
        frame_count=frame_count,
        width=64,
        height=48,
    )


# =============================================================================
# Camera and encoder
# =============================================================================

class FakeCamera:
    def __init__(self, image=None, is_open=True, is_ready=True):
        self.image = make_image() if image is None else image
        self.is_open = is_open
        self.is_ready = is_ready
        self.release_count = 0

    def latest_frame(self):
        return None if self.image is None else self.image.copy()

    def release(self):
        self.release_count += 1
        self.is_open = False
        self.is_ready = False


class FakeEncoder(VideoEncoder):
    def __init__(self, fail_on_write=None, fail_on_open=False):
        self.fail_on_write = fail_on_write
        self.fail_on_open = fail_on_open
        self.size = None
        self.fps = None
        self.written = []
        self.finished = False
        self.aborted = False

    def open(self, size, fps):
        if self.fail_on_open:
            raise RuntimeError("encoder unavailable")
        self.size = size
        self.fps = fps

    def write(self, image):
        if self.fail_on_write is not None and len(self.written) == self.fail_on_write:
            raise RuntimeError("encoder crashed")
        self.written.append(image.copy())

    def finish(self):
        self.finished = True
        return EncodedVideo(data=b"encoded:%d" % len(self.written), codec="VP90",
                            container="webm", frames_written=len(self.written))

    def abort(self):
        self.aborted = True


@pytest.fixture()
def fake_loop():
    return FakeLoop()


@pytest.fixture()
def clock(fake_loop):
    return CaptureClock(loop=fake_loop)


@pytest.fixture()
def camera():
    return FakeCamera()


@pytest.fixture()
def encoders():
    """Every FakeEncoder created by the ``assembler`` fixture."""
    return []


@pytest.fixture()
def assembler(encoders, tmp_path):
    def factory():
        encoder = FakeEncoder()
        encoders.append(encoder)
        return encoder

    return VideoAssembler(encoder_factory=factory, target_fps=30,
                          realtime_pacing=False, preview_dir=str(tmp_path))
