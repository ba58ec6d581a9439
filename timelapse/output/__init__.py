"""
Output module - local storage, publishing and titles.

Provides:
    RecordingWriter: Saves videos with JSON metadata and serves listings
    RecordingPublisher: Uploads/publishes videos to the recordings server
    generate_title: Random whimsical recording title
"""

from .publisher import RecordingPublisher
from .titles import generate_title
from .writer import RecordingWriter

__all__ = ["RecordingWriter", "RecordingPublisher", "generate_title"]
