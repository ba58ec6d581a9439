"""
Wormhole Timelapse - webcam stills assembled into timelapse videos

Usage:
    python main.py --config config/settings.yaml
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
import yaml
from pathlib import Path
from datetime import datetime
from typing import Optional

from timelapse.assembly import AssembledVideo, OpenCVEncoder, VideoAssembler
from timelapse.capture import CameraStream, SessionController
from timelapse.errors import TimelapseError
from timelapse.output import RecordingPublisher, RecordingWriter, generate_title


def setup_logging(log_dir: Path) -> None:
    """Configure logging to console and file."""
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"timelapse_{datetime.now().strftime('%Y%m%d')}.log"

    # Format
    fmt = "%(asctime)s | %(levelname)-8s | %(message)s"
    datefmt = "%H:%M:%S"

    # Root logger
    logging.basicConfig(
        level=logging.INFO,
        format=fmt,
        datefmt=datefmt,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("picamera2").setLevel(logging.WARNING)


logger = logging.getLogger("timelapse")


class TimelapsePipeline:
    """Runs one capture session: record, assemble, save, publish."""

    def __init__(self, config: dict):
        self.config = config
        self.stop_event: Optional[asyncio.Event] = None

        user_config = config["user"]
        self.user_id = str(user_config["id"])
        self.user_name = user_config.get("name", self.user_id)

        capture = config["capture"]
        self.interval = capture["interval_seconds"]
        self.ready_timeout = capture.get("ready_timeout_seconds", 10)

        publish_config = config.get("publish", {})
        self.enable_publish = publish_config.get("enabled", False)
        self.publish_public = publish_config.get("is_public", False)

        self.camera = self._init_camera()
        self.assembler = self._init_assembler()
        self.writer = RecordingWriter(config["paths"])
        self.publisher = RecordingPublisher(
            api_url=publish_config.get("api_url", "http://localhost:3001"),
            timeout=publish_config.get("timeout_seconds", 60),
        ) if self.enable_publish else None

        assembly = config["assembly"]
        logger.info("=" * 60)
        logger.info("TIMELAPSE PIPELINE INITIALIZED")
        logger.info("=" * 60)
        logger.info(f"User:          {self.user_name} ({self.user_id})")
        logger.info(f"Camera:        {'picamera2' if capture['use_picamera'] else capture['camera_index']}")
        logger.info(f"Interval:      {self.interval}s")
        logger.info(f"Output rate:   {assembly['target_fps']}fps")
        logger.info(f"Recordings:    {config['paths']['recordings_dir']}")
        logger.info(f"Publish:       {publish_config.get('api_url') if self.enable_publish else 'disabled'}")

    def _init_camera(self) -> CameraStream:
        """Initialize camera stream from config."""
        capture = self.config["capture"]
        resolution = capture.get("resolution")

        return CameraStream(
            camera_index=capture["camera_index"],
            use_picamera=capture["use_picamera"],
            resolution=tuple(resolution) if resolution else None,
        )

    def _init_assembler(self) -> VideoAssembler:
        """Initialize video assembler from config."""
        assembly = self.config["assembly"]
        codecs = assembly.get("codecs")

        return VideoAssembler(
            encoder_factory=lambda: OpenCVEncoder(codecs=codecs),
            target_fps=assembly["target_fps"],
            realtime_pacing=assembly.get("realtime_pacing", True),
        )

    def request_stop(self) -> None:
        if self.stop_event is not None and not self.stop_event.is_set():
            logger.info("Stop requested")
            self.stop_event.set()

    async def run(self, duration: Optional[float] = None, title: Optional[str] = None,
                  save: bool = True, publish: bool = False) -> Optional[AssembledVideo]:
        """Record until ``duration`` elapses or request_stop() is called."""
        self.stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        session = SessionController(
            camera=self.camera,
            assembler=self.assembler,
            interval=self.interval,
            min_frames=self.config["capture"].get("min_frames", 4),
            jpeg_quality=self.config["capture"].get("jpeg_quality", 90),
        )

        async with session:
            await loop.run_in_executor(None, self.camera.open)
            ready = await loop.run_in_executor(
                None, self.camera.wait_until_ready, self.ready_timeout
            )
            if not ready:
                logger.warning(f"No frame from camera after {self.ready_timeout}s")

            logger.info("=" * 60)
            logger.info("STARTING RECORDING")
            logger.info("=" * 60)
            session.start()

            if duration:
                logger.info(f"Recording for {duration}s - Ctrl+C to stop early")
                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
            else:
                logger.info("Recording - Ctrl+C to stop")
                await self.stop_event.wait()

            logger.info("=" * 60)
            logger.info("STOPPING RECORDING")
            logger.info("=" * 60)
            video = await session.stop()

            # Detach so leaving the session does not delete the preview
            session.video = None

        if video is None:
            return None

        title = title or generate_title()
        logger.info(f"Title: {title}")
        logger.info(f"Preview: {video.preview_path}")

        try:
            if save:
                self.writer.save(video, user_id=self.user_id, title=title,
                                 is_public=self.publish_public)

            if publish:
                if self.publisher is None:
                    self.publisher = RecordingPublisher(
                        api_url=self.config.get("publish", {}).get("api_url", "http://localhost:3001")
                    )
                self.publisher.publish(video, title=title, user_id=self.user_id,
                                       user_name=self.user_name)
        finally:
            video.discard()

        return video


def load_config(config_path: str) -> dict:
    """Load and validate configuration."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    # Required sections
    required = ["user", "paths", "capture", "assembly"]
    missing = [s for s in required if s not in config]
    if missing:
        raise ValueError(f"Missing config sections: {missing}")

    # Required user keys
    if "id" not in config["user"]:
        raise ValueError("Missing user.id in config")

    # Required capture keys
    capture_keys = ["camera_index", "use_picamera", "interval_seconds"]
    for key in capture_keys:
        if key not in config["capture"]:
            raise ValueError(f"Missing capture.{key} in config")

    # Required assembly keys
    if "target_fps" not in config["assembly"]:
        raise ValueError("Missing assembly.target_fps in config")

    interval = config["capture"]["interval_seconds"]
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        raise ValueError(f"capture.interval_seconds must be an integer >= 1, got {interval!r}")

    min_frames = config["capture"].get("min_frames", 4)
    if not isinstance(min_frames, int) or min_frames < 1:
        raise ValueError(f"capture.min_frames must be an integer >= 1, got {min_frames!r}")

    target_fps = config["assembly"]["target_fps"]
    if not isinstance(target_fps, (int, float)) or target_fps <= 0:
        raise ValueError(f"assembly.target_fps must be positive, got {target_fps!r}")

    for codec in config["assembly"].get("codecs") or []:
        if len(codec) != 2 or len(str(codec[0])) != 4:
            raise ValueError(f"assembly.codecs entries must be [fourcc, extension], got {codec!r}")

    # Resolve paths relative to the project root
    config_dir = path.parent.parent

    paths = config["paths"]
    for key, default in (("recordings_dir", "output/recordings"),
                         ("logs_dir", "output/logs")):
        value = paths.get(key, default)
        if not Path(value).is_absolute():
            paths[key] = str(config_dir / value)

    return config


def main():
    parser = argparse.ArgumentParser(
        description="Wormhole Timelapse - webcam stills assembled into timelapse videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --config config/settings.yaml
  python main.py -c config/settings.yaml --interval 5 --duration 600 --publish
        """
    )
    parser.add_argument(
        "--config", "-c",
        required=True,
        help="Path to settings.yaml configuration file"
    )
    parser.add_argument("--interval", type=int, help="Seconds between captures (overrides config)")
    parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("--title", help="Recording title (random if omitted)")
    parser.add_argument("--publish", action="store_true", help="Publish the video to Slack")
    parser.add_argument("--no-save", action="store_true", help="Do not keep a local copy")
    args = parser.parse_args()

    # Load config
    try:
        config = load_config(args.config)
        if args.interval is not None:
            if args.interval < 1:
                raise ValueError("--interval must be at least 1")
            config["capture"]["interval_seconds"] = args.interval
    except Exception as e:
        print(f"ERROR: {e}")
        return 1

    # Setup logging
    setup_logging(Path(config["paths"]["logs_dir"]))

    # Banner
    logger.info("=" * 60)
    logger.info("  WORMHOLE TIMELAPSE")
    logger.info("=" * 60)

    # Initialize pipeline
    try:
        pipeline = TimelapsePipeline(config=config)
    except Exception as e:
        logger.error(f"Failed to initialize: {e}", exc_info=True)
        return 1

    publish = args.publish or pipeline.enable_publish

    async def run() -> Optional[AssembledVideo]:
        loop = asyncio.get_running_loop()

        # Track shutdown state
        shutdown_count = [0]

        def signal_handler():
            shutdown_count[0] += 1

            if shutdown_count[0] == 1:
                # First Ctrl+C: stop recording, assembly continues
                logger.info("Ctrl+C received - stopping recording")
                pipeline.request_stop()
            else:
                # Second Ctrl+C: force stop immediately
                logger.info("Second Ctrl+C - forcing shutdown")
                pipeline.camera.release()
                os._exit(1)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                pass

        return await pipeline.run(
            duration=args.duration,
            title=args.title,
            save=not args.no_save,
            publish=publish,
        )

    # Run
    try:
        video = asyncio.run(run())
    except TimelapseError as e:
        logger.error(f"Recording failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        pipeline.camera.release()

    if video is None:
        logger.info("No video produced")
        return 1

    logger.info(f"Timelapse complete: {video.duration:.2f}s video")
    return 0


if __name__ == "__main__":
    sys.exit(main())
