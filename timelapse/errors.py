"""
Error taxonomy for the timelapse pipeline.

Every error carries a short ``kind`` string so UI-facing callbacks can
report ``on_error(kind, message)`` without matching on classes.
"""


class TimelapseError(Exception):
    """Base class for all pipeline errors."""

    kind = "timelapse_error"


# ---------------------------------------------------------------------------
# Session gating
# ---------------------------------------------------------------------------

class DeviceUnavailableError(TimelapseError):
    """No camera stream is attached or the device could not be opened."""

    kind = "device_unavailable"


class DeviceNotReadyError(TimelapseError):
    """The camera stream has not delivered a first frame yet."""

    kind = "device_not_ready"


class InsufficientFramesError(TimelapseError):
    """Recording stopped with fewer frames than the minimum."""

    kind = "insufficient_frames"

    def __init__(self, count: int, minimum: int):
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"Not enough frames captured: {count} (minimum {minimum}). "
            f"Please record for longer."
        )


class SessionStateError(TimelapseError):
    kind = "session_state"


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

class AssemblyError(TimelapseError):
    """Assembly aborted; no partial video is produced."""

    kind = "assembly_error"


class NoFramesError(AssemblyError):
    kind = "no_frames"


class FrameDecodeError(AssemblyError):
    kind = "frame_decode"

    def __init__(self, index: int, reason: str = "could not decode image"):
        self.index = index
        super().__init__(f"Frame {index}: {reason}")


class EncoderError(AssemblyError):
    kind = "encoder"


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class RecordingNotFoundError(TimelapseError):
    kind = "recording_not_found"


class PublishError(TimelapseError):
    """The recordings server rejected an upload or publish request."""

    kind = "publish_error"

    def __init__(self, error: str, details=None, slack_error=None,
                 status_code=None):
        self.error = error
        self.details = details
        self.slack_error = slack_error
        self.status_code = status_code

        message = error
        if details:
            message += f"\nDetails: {details}"
        if slack_error:
            message += f"\nSlack Error: {slack_error}"
        super().__init__(message)
