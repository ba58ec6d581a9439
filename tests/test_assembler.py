import asyncio

import cv2
import numpy as np
import pytest

from timelapse.assembly import OpenCVEncoder, VideoAssembler
from timelapse.capture import Frame
from timelapse.errors import EncoderError, FrameDecodeError, NoFramesError

from conftest import FakeEncoder, make_frame


def _assembler(encoder, tmp_path, **kwargs):
    kwargs.setdefault("realtime_pacing", False)
    return VideoAssembler(encoder_factory=lambda: encoder, target_fps=30,
                          preview_dir=str(tmp_path), **kwargs)


def test_empty_sequence_raises_no_frames(assembler):
    with pytest.raises(NoFramesError):
        asyncio.run(assembler.assemble([]))


def test_five_frames_at_30fps_last_one_sixth_of_a_second(assembler, encoders):
    frames = [make_frame() for _ in range(5)]

    video = asyncio.run(assembler.assemble(frames))

    assert video.frame_count == 5
    assert video.fps == 30
    assert video.duration == pytest.approx(5 / 30)
    assert video.data == b"encoded:5"
    assert video.mime_type == "video/webm; codecs=vp9"
    assert len(encoders) == 1
    assert encoders[0].fps == 30
    assert len(encoders[0].written) == 5


def test_duration_is_independent_of_encoder_output(tmp_path):
    frames = [make_frame() for _ in range(12)]
    first = asyncio.run(_assembler(FakeEncoder(), tmp_path).assemble(frames))
    second = asyncio.run(_assembler(FakeEncoder(), tmp_path).assemble(frames))

    assert first.duration == second.duration == pytest.approx(12 / 30)


def test_canvas_takes_first_frame_size(tmp_path):
    encoder = FakeEncoder()
    frames = [make_frame(80, 60), make_frame(40, 30), make_frame(120, 90)]

    video = asyncio.run(_assembler(encoder, tmp_path).assemble(frames))

    assert encoder.size == (80, 60)
    assert (video.width, video.height) == (80, 60)
    assert all(img.shape == (60, 80, 3) for img in encoder.written)


def test_larger_frames_are_clipped_not_scaled(tmp_path):
    encoder = FakeEncoder()
    big = np.zeros((90, 120, 3), dtype=np.uint8)
    big[:60, :80] = (0, 0, 255)
    big[60:, :] = (255, 0, 0)
    frames = [make_frame(80, 60, color=(0, 255, 0)), Frame.from_image(big)]

    asyncio.run(_assembler(encoder, tmp_path).assemble(frames))

    second = encoder.written[1]
    # Only the top-left 80x60 of the large frame is visible, which is red
    assert second[30, 40, 2] > 200
    assert second[30, 40, 0] < 50


def test_smaller_frames_leave_previous_canvas_visible(tmp_path):
    encoder = FakeEncoder()
    frames = [make_frame(80, 60, color=(0, 255, 0)),
              make_frame(40, 30, color=(255, 0, 0))]

    asyncio.run(_assembler(encoder, tmp_path).assemble(frames))

    second = encoder.written[1]
    assert second[10, 10, 0] > 200        # new frame in the top-left corner
    assert second[50, 70, 1] > 200        # rest still shows the first frame


def test_undecodable_frame_aborts_assembly(tmp_path):
    encoder = FakeEncoder()
    frames = [make_frame(), make_frame(), Frame(data=b"garbage"), make_frame()]

    with pytest.raises(FrameDecodeError) as excinfo:
        asyncio.run(_assembler(encoder, tmp_path).assemble(frames))

    assert excinfo.value.index == 2
    assert encoder.aborted
    assert not encoder.finished
    assert list(tmp_path.iterdir()) == []


def test_undecodable_first_frame_never_opens_encoder(tmp_path):
    encoder = FakeEncoder()

    with pytest.raises(FrameDecodeError):
        asyncio.run(_assembler(encoder, tmp_path).assemble([Frame(data=b"x")]))

    assert encoder.size is None


def test_encoder_failure_becomes_encoder_error(tmp_path):
    encoder = FakeEncoder(fail_on_write=1)
    frames = [make_frame() for _ in range(4)]

    with pytest.raises(EncoderError):
        asyncio.run(_assembler(encoder, tmp_path).assemble(frames))

    assert encoder.aborted
    assert not encoder.finished


def test_encoder_open_failure_becomes_encoder_error(tmp_path):
    encoder = FakeEncoder(fail_on_open=True)

    with pytest.raises(EncoderError):
        asyncio.run(_assembler(encoder, tmp_path).assemble([make_frame()]))
    assert encoder.aborted


def test_realtime_pacing_holds_each_frame(tmp_path):
    holds = []

    async def fake_sleep(seconds):
        holds.append(seconds)

    assembler = _assembler(FakeEncoder(), tmp_path, realtime_pacing=True, sleep=fake_sleep)
    asyncio.run(assembler.assemble([make_frame() for _ in range(4)]))

    assert holds == [pytest.approx(1 / 30)] * 4


def test_preview_file_written_and_discarded(assembler, tmp_path):
    video = asyncio.run(assembler.assemble([make_frame() for _ in range(4)]))

    assert video.preview_path.parent == tmp_path
    assert video.preview_path.read_bytes() == video.data

    path = video.preview_path
    video.discard()
    video.discard()
    assert not path.exists()
    assert video.preview_path is None


def test_rejects_non_positive_target_fps():
    with pytest.raises(ValueError):
        VideoAssembler(encoder_factory=FakeEncoder, target_fps=0)


def test_opencv_encoder_produces_playable_video(tmp_path):
    frames = [make_frame(64, 48, color=(i * 40, 0, 0)) for i in range(5)]
    assembler = VideoAssembler(
        encoder_factory=lambda: OpenCVEncoder(codecs=[("mp4v", "mp4"), ("MJPG", "avi")],
                                              work_dir=str(tmp_path)),
        target_fps=30,
        realtime_pacing=False,
        preview_dir=str(tmp_path),
    )

    try:
        video = asyncio.run(assembler.assemble(frames))
    except EncoderError as e:
        pytest.skip(f"OpenCV build can write neither mp4v nor MJPG: {e}")

    assert (video.container, video.mime_type) in [
        ("mp4", "video/mp4; codecs=mp4v"),
        ("avi", "video/x-msvideo; codecs=mjpeg"),
    ]

    capture = cv2.VideoCapture(str(video.preview_path))
    decoded = 0
    while True:
        ok, _ = capture.read()
        if not ok:
            break
        decoded += 1
    capture.release()

    assert decoded == 5
    # Only the preview remains; the encoder's temp file is gone
    assert list(tmp_path.iterdir()) == [video.preview_path]


class _StubWriter:
    """cv2.VideoWriter stand-in that only opens for the listed fourccs."""

    supported = set()
    opened = []

    def __init__(self, path, fourcc, fps, size):
        self.path = path
        self.ok = fourcc in self.supported
        _StubWriter.opened.append(fourcc)

    def isOpened(self):
        return self.ok

    def write(self, image):
        pass

    def release(self):
        if self.ok:
            with open(self.path, "wb") as f:
                f.write(b"stub-video")


@pytest.fixture()
def stub_writer(monkeypatch):
    _StubWriter.supported = set()
    _StubWriter.opened = []
    monkeypatch.setattr(cv2, "VideoWriter", _StubWriter)
    return _StubWriter


def test_opencv_encoder_falls_back_to_next_codec(tmp_path, stub_writer):
    stub_writer.supported = {cv2.VideoWriter_fourcc(*"mp4v")}
    encoder = OpenCVEncoder(work_dir=str(tmp_path))

    encoder.open((64, 48), 30)
    encoder.write(np.zeros((48, 64, 3), dtype=np.uint8))
    result = encoder.finish()

    assert len(stub_writer.opened) == 4
    assert (result.codec, result.container) == ("mp4v", "mp4")
    assert result.data == b"stub-video"
    assert result.frames_written == 1
    assert list(tmp_path.iterdir()) == []


def test_opencv_encoder_without_supported_codec_raises(tmp_path, stub_writer):
    encoder = OpenCVEncoder(codecs=[("VP90", "webm"), ("VP80", "webm")],
                            work_dir=str(tmp_path))

    with pytest.raises(EncoderError):
        encoder.open((64, 48), 30)
    assert list(tmp_path.iterdir()) == []


def test_opencv_encoder_rejects_mismatched_frame_size(tmp_path, stub_writer):
    stub_writer.supported = {cv2.VideoWriter_fourcc(*"VP90")}
    encoder = OpenCVEncoder(work_dir=str(tmp_path))
    encoder.open((64, 48), 30)

    with pytest.raises(EncoderError):
        encoder.write(np.zeros((10, 10, 3), dtype=np.uint8))

    encoder.abort()
    assert list(tmp_path.iterdir()) == []


def test_unwritable_preview_dir_raises_encoder_error(tmp_path):
    encoder = FakeEncoder()
    assembler = _assembler(encoder, tmp_path / "missing")

    with pytest.raises(EncoderError, match="preview"):
        asyncio.run(assembler.assemble([make_frame() for _ in range(4)]))
    assert encoder.finished
