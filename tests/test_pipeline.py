import asyncio

import pytest

from main import TimelapsePipeline
from timelapse.assembly import VideoAssembler

from conftest import FakeCamera, FakeEncoder


class _OpenableCamera(FakeCamera):
    def open(self):
        self.is_open = True
        self.is_ready = True
        return self

    def wait_until_ready(self, timeout=5.0):
        return self.is_ready


def _pipeline(tmp_path):
    config = {
        "user": {"id": "U123", "name": "Tester"},
        "paths": {"recordings_dir": str(tmp_path / "recordings"),
                  "logs_dir": str(tmp_path / "logs")},
        "capture": {"camera_index": 0, "use_picamera": False,
                    "interval_seconds": 1, "min_frames": 1},
        "assembly": {"target_fps": 30, "realtime_pacing": False},
    }
    pipeline = TimelapsePipeline(config)
    pipeline.camera = _OpenableCamera(is_open=False, is_ready=False)
    pipeline.assembler = VideoAssembler(encoder_factory=FakeEncoder, realtime_pacing=False,
                                        preview_dir=str(tmp_path / "previews"))
    (tmp_path / "previews").mkdir()
    return pipeline


def test_run_saves_recording_and_removes_preview(tmp_path):
    pipeline = _pipeline(tmp_path)

    video = asyncio.run(pipeline.run(duration=0.05, title="Tiny Worm"))

    assert video.frame_count == 1
    assert video.preview_path is None
    assert list((tmp_path / "previews").iterdir()) == []

    recordings = pipeline.writer.list_recordings("U123")
    assert [r["title"] for r in recordings] == ["Tiny Worm"]
    assert pipeline.camera.release_count == 1


def test_preview_removed_even_when_save_fails(tmp_path):
    pipeline = _pipeline(tmp_path)

    def broken_save(*args, **kwargs):
        raise OSError("disk full")

    pipeline.writer.save = broken_save

    with pytest.raises(OSError):
        asyncio.run(pipeline.run(duration=0.05))

    assert list((tmp_path / "previews").iterdir()) == []
