"""
HTTP client for the recordings server.

The server accepts multipart uploads (field ``recording`` plus form
fields) and answers non-2xx requests with JSON ``{error, details?}``.
The publish endpoint forwards the video to Slack on the user's behalf.
"""

import logging
from typing import Dict, Optional

import requests

from ..assembly import AssembledVideo
from ..errors import PublishError

logger = logging.getLogger(__name__)

PUBLISH_ENDPOINT = "/api/publish"
UPLOAD_ENDPOINT = "/api/recordings/upload"
HEALTH_ENDPOINT = "/api/test"


class RecordingPublisher:
    """Uploads assembled videos to the recordings server."""

    def __init__(self, api_url: str, timeout: float = 60.0,
                 session: Optional[requests.Session] = None):
        """
        Args:
            api_url: Server base URL, e.g. http://localhost:3001
            timeout: Request timeout in seconds
            session: requests session (a new one if None)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def check_server(self) -> bool:
        """True if the server answers its health endpoint."""
        try:
            response = self.session.get(f"{self.api_url}{HEALTH_ENDPOINT}",
                                        timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Recordings server unreachable: {e}")
            return False
        return response.ok

    def publish(self, video: AssembledVideo, title: str,
                user_id: str, user_name: str) -> Dict:
        """Publish a video to Slack through the server."""
        logger.info(f"Publishing \"{title}\" for {user_name} "
                    f"({video.size_bytes / 1024:.0f}KB)")
        payload = self._post(PUBLISH_ENDPOINT, video, {
            "title": title,
            "userId": user_id,
            "userName": user_name,
        })
        logger.info("Successfully published to Slack")
        return payload

    def upload(self, video: AssembledVideo, title: str, user_id: str,
               is_public: bool = False) -> Dict:
        """Store a video in the server's recording library."""
        logger.info(f"Uploading \"{title}\" ({video.size_bytes / 1024:.0f}KB)")
        payload = self._post(UPLOAD_ENDPOINT, video, {
            "title": title,
            "userId": user_id,
            "isPublic": "true" if is_public else "false",
        })
        logger.info("Upload complete")
        return payload

    def _post(self, endpoint: str, video: AssembledVideo, fields: Dict) -> Dict:
        url = f"{self.api_url}{endpoint}"
        content_type = video.mime_type.split(";")[0]
        files = {"recording": (video.filename, video.data, content_type)}

        try:
            response = self.session.post(url, data=fields, files=files,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise PublishError(f"Request to {url} failed", details=str(e)) from e

        logger.debug(f"Server response status: {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise PublishError(f"Server returned invalid JSON: {response.text}",
                               status_code=response.status_code)

        if not response.ok:
            if not isinstance(payload, dict):
                payload = {}
            raise PublishError(
                payload.get("error") or f"Upload failed with status: {response.status_code}",
                details=payload.get("details"),
                slack_error=payload.get("slackError"),
                status_code=response.status_code,
            )

        return payload
