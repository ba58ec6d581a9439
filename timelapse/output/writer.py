"""
Local recording store.

Saves:
    - The encoded video file
    - A JSON sidecar per recording (owner, title, visibility, video info)

Visibility rules: a user sees their own recordings plus other users'
public ones; only the owner can delete, rename or change visibility.
"""

import json
import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..assembly import AssembledVideo
from ..errors import RecordingNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Recording"
PUBLIC_LIMIT = 20


class RecordingWriter:
    """
    Writes assembled videos and their metadata to disk.

    Sidecar format:
    {
        "id": "9f0c...",
        "user_id": "U024BE7LH",
        "title": "Cosmic Wormhole Journey",
        "filename": "1760890000000-9f0c1a2b.webm",
        "path": "/.../recordings/1760890000000-9f0c1a2b.webm",
        "created_at": "2026-10-19T14:30:00.123456",
        "is_public": false,
        "video_info": {"fps": 30, "frame_count": 120, "duration_seconds": 4.0,
                       "width": 1280, "height": 720,
                       "mime_type": "video/webm; codecs=vp9"}
    }
    """

    def __init__(self, config: dict):
        """
        Initialize the recording writer.

        Args:
            config: Paths configuration from settings.yaml
        """
        self.config = config
        self.recordings_dir = Path(config.get("recordings_dir", "output/recordings"))

        # Ensure output directory exists
        self.recordings_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"RecordingWriter initialized: {self.recordings_dir}")

    def save(self, video: AssembledVideo, user_id: str,
             title: Optional[str] = None, is_public: bool = False) -> Dict:
        """
        Persist a video and its metadata.

        Returns:
            The recording metadata dict
        """
        if not user_id:
            raise ValueError("user_id is required")

        recording_id = uuid.uuid4().hex
        filename = f"{int(time.time() * 1000)}-{recording_id[:8]}.{video.container}"
        video_path = self.recordings_dir / filename
        video_path.write_bytes(video.data)

        recording = {
            "id": recording_id,
            "user_id": user_id,
            "title": title or DEFAULT_TITLE,
            "filename": filename,
            "path": str(video_path),
            "created_at": datetime.now().isoformat(),
            "is_public": bool(is_public),
            "video_info": {
                "fps": video.fps,
                "frame_count": video.frame_count,
                "duration_seconds": round(video.duration, 3),
                "width": video.width,
                "height": video.height,
                "mime_type": video.mime_type,
            },
        }
        self._write_metadata(recording)

        size_mb = video.size_bytes / (1024 * 1024)
        logger.info(f"Recording saved: {filename} ({size_mb:.2f}MB, "
                    f"\"{recording['title']}\")")
        return recording

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_recordings(self, user_id: str) -> List[Dict]:
        """Own recordings plus other users' public ones, newest first."""
        recordings = [
            r for r in self._load_all()
            if r["user_id"] == user_id or r.get("is_public")
        ]
        return sorted(recordings, key=lambda r: r["created_at"], reverse=True)

    def list_public(self, limit: int = PUBLIC_LIMIT) -> List[Dict]:
        """Most recent public recordings."""
        recordings = [r for r in self._load_all() if r.get("is_public")]
        recordings.sort(key=lambda r: r["created_at"], reverse=True)
        return recordings[:limit]

    def get(self, user_id: str, recording_id: str) -> Dict:
        """A recording the user owns or that is public."""
        recording = self._find(recording_id)
        if recording is None or not (recording["user_id"] == user_id
                                     or recording.get("is_public")):
            raise RecordingNotFoundError("Recording not found")
        return recording

    def video_path(self, user_id: str, recording_id: str) -> Path:
        """Path of the video file, checked to exist."""
        recording = self.get(user_id, recording_id)
        path = Path(recording["path"])
        if not path.exists():
            raise RecordingNotFoundError("Recording file not found")
        return path

    # ------------------------------------------------------------------
    # Owner-only updates
    # ------------------------------------------------------------------

    def delete(self, user_id: str, recording_id: str) -> None:
        recording = self._find_owned(user_id, recording_id)

        Path(recording["path"]).unlink(missing_ok=True)
        self._metadata_path(recording["id"]).unlink(missing_ok=True)
        logger.info(f"Recording deleted: {recording['filename']}")

    def set_visibility(self, user_id: str, recording_id: str, is_public: bool) -> Dict:
        recording = self._find_owned(user_id, recording_id)
        recording["is_public"] = bool(is_public)
        self._write_metadata(recording)
        logger.info(f"Recording {recording['filename']} is now "
                    f"{'public' if recording['is_public'] else 'private'}")
        return recording

    def rename(self, user_id: str, recording_id: str, title: str) -> Dict:
        if not title or not isinstance(title, str):
            raise ValueError("Title is required and must be a string")

        recording = self._find_owned(user_id, recording_id)
        recording["title"] = title
        self._write_metadata(recording)
        logger.info(f"Recording {recording['filename']} renamed to \"{title}\"")
        return recording

    # ------------------------------------------------------------------

    def _metadata_path(self, recording_id: str) -> Path:
        return self.recordings_dir / f"{recording_id}.json"

    def _write_metadata(self, recording: Dict) -> None:
        with open(self._metadata_path(recording["id"]), "w") as f:
            json.dump(recording, f, indent=2, default=str)

    def _load_all(self) -> List[Dict]:
        recordings = []
        for path in sorted(self.recordings_dir.glob("*.json")):
            try:
                with open(path) as f:
                    recordings.append(json.load(f))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable metadata {path.name}: {e}")
        return recordings

    def _find(self, recording_id: str) -> Optional[Dict]:
        for recording in self._load_all():
            if recording.get("id") == recording_id:
                return recording
        return None

    def _find_owned(self, user_id: str, recording_id: str) -> Dict:
        recording = self._find(recording_id)
        if recording is None or recording["user_id"] != user_id:
            raise RecordingNotFoundError("Recording not found")
        return recording
