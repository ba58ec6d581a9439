"""
Wormhole Timelapse - periodic webcam stills assembled into timelapse videos.
"""

__version__ = "0.1.0"
