import base64
import subprocess
from io import BytesIO

import pytest
from PIL import Image
from pydantic import ValidationError

from caption_studio.core.errors import FileOperationError, MediaToolError, UserInputError
from caption_studio.media import editing, ffmpeg
from caption_studio.media.editing import (
    CropParams,
    build_crop_filters,
    crop_image,
    crop_video,
    ffmpeg_error_message,
    save_cropped_image,
    select_encoder,
    trim_video,
)
from caption_studio.media.progress import ProgressCounter

from conftest import make_image


def _quadrants(path):
    """64x32 image: left half red, right half blue."""
    img = Image.new("RGB", (64, 32), (255, 0, 0))
    img.paste((0, 0, 255), (32, 0, 64, 32))
    img.save(path)
    return path


def test_crop_params_aliases_and_rotation():
    p = CropParams.model_validate({"x": 0, "y": 0, "width": 10, "height": 10, "rotation": 450, "flipH": True})
    assert p.rotation == 90
    assert p.flip_h is True and p.flip_v is False
    with pytest.raises(ValidationError):
        CropParams(x=0, y=0, width=10, height=10, rotation=45)
    with pytest.raises(ValidationError):
        CropParams(x=-1, y=0, width=10, height=10)


def test_filter_chain_order_and_even_dimensions():
    p = CropParams(x=10.7, y=5, width=101, height=57, rotation=90, flip_h=True, flip_v=True)
    assert build_crop_filters(p) == (
        "rotate=PI/2:ow=rotw(PI/2):oh=roth(PI/2),hflip,vflip,crop=100:56:10:5"
    )
    assert build_crop_filters(CropParams(x=0, y=0, width=20, height=20)) == "crop=20:20:0:0"


def test_crop_image_keeps_format_and_cleans_up(tmp_path):
    p = _quadrants(tmp_path / "q.png")
    crop_image(p, CropParams(x=32, y=0, width=32, height=32))

    with Image.open(p) as out:
        assert out.format == "PNG"
        assert out.size == (32, 32)
        assert out.getpixel((5, 5)) == (0, 0, 255)
    assert sorted(x.name for x in tmp_path.iterdir()) == ["q.png"]


def test_crop_image_rotates_clockwise_then_flips(tmp_path):
    p = _quadrants(tmp_path / "q.png")
    # 90 clockwise: red half ends up on top of a 32x64 frame
    crop_image(p, CropParams(x=0, y=0, width=32, height=64, rotation=90))
    with Image.open(p) as out:
        assert out.size == (32, 64)
        assert out.getpixel((5, 5)) == (255, 0, 0)
        assert out.getpixel((5, 60)) == (0, 0, 255)

    crop_image(p, CropParams(x=0, y=0, width=32, height=64, flip_v=True))
    with Image.open(p) as out:
        assert out.getpixel((5, 5)) == (0, 0, 255)


def test_crop_image_rect_outside_is_rejected(tmp_path):
    p = make_image(tmp_path / "a.jpg", size=(20, 20))
    before = p.read_bytes()
    with pytest.raises(UserInputError):
        crop_image(p, CropParams(x=50, y=50, width=10, height=10))
    assert p.read_bytes() == before


def test_save_cropped_image(tmp_path):
    p = make_image(tmp_path / "a.png", size=(40, 40))
    buf = BytesIO()
    Image.new("RGB", (8, 8), (0, 255, 0)).save(buf, format="PNG")
    url = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()

    save_cropped_image(p, url)
    with Image.open(p) as out:
        assert out.size == (8, 8)
    assert not (tmp_path / "a_backup.png").exists()


@pytest.mark.parametrize("url", ["not a data url", "data:image/png;base64,!!!!", "data:image/png;base64,AAAA"])
def test_save_cropped_image_rejects_bad_data(tmp_path, url):
    p = make_image(tmp_path / "a.png")
    with pytest.raises(UserInputError):
        save_cropped_image(p, url)


def test_crop_video_invokes_ffmpeg_and_replaces(tmp_path, monkeypatch):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"original")
    calls = []

    def fake_run(cmd):
        calls.append(cmd)
        (tmp_path / "clip_temp.mp4").write_bytes(b"cropped")
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(ffmpeg, "require_ffmpeg", lambda bin, feature: None)
    monkeypatch.setattr(ffmpeg, "run_tool", fake_run)
    crop_video(video, CropParams(x=0, y=0, width=64, height=64, rotation=180))

    cmd = calls[0]
    assert cmd[cmd.index("-vf") + 1] == "rotate=PI:ow=rotw(PI):oh=roth(PI),crop=64:64:0:0"
    assert cmd[cmd.index("-c:a") + 1] == "copy"
    assert video.read_bytes() == b"cropped"
    assert sorted(x.name for x in tmp_path.iterdir()) == ["clip.mp4"]


def test_crop_video_failure_keeps_original(tmp_path, monkeypatch):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"original")
    monkeypatch.setattr(ffmpeg, "require_ffmpeg", lambda bin, feature: None)
    monkeypatch.setattr(ffmpeg, "run_tool", lambda cmd: subprocess.CompletedProcess(cmd, 1, b"", b"boom"))

    with pytest.raises(MediaToolError, match="Failed to crop video"):
        crop_video(video, CropParams(x=0, y=0, width=64, height=64))
    assert video.read_bytes() == b"original"
    assert sorted(x.name for x in tmp_path.iterdir()) == ["clip.mp4"]


def test_crop_video_requires_ffmpeg(tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"original")
    with pytest.raises(MediaToolError, match="FFmpeg is not installed"):
        crop_video(video, CropParams(x=0, y=0, width=64, height=64), ffmpeg_bin="definitely-not-ffmpeg")


@pytest.mark.parametrize("start,end,msg", [
    (-1, 5, "Start time cannot be negative"),
    (5, 5, "End time must be greater than start time"),
    (6, 2, "End time must be greater than start time"),
])
def test_trim_validates_range(tmp_path, start, end, msg):
    progress = ProgressCounter()
    progress.set(42)
    with pytest.raises(UserInputError, match=msg):
        trim_video(tmp_path / "clip.mp4", start, end, progress=progress)
    assert progress.get() == 0


@pytest.mark.parametrize("codec,expected", [
    ("hevc", ("libx265", "22", "medium")),
    ("hvc1", ("libx265", "22", "medium")),
    ("vp9", ("libvpx-vp9", "18", "good")),
    ("av1", ("libaom-av1", "20", "medium")),
    ("h264", ("libx264", "18", "medium")),
    (None, ("libx264", "18", "medium")),
])
def test_select_encoder(codec, expected):
    assert select_encoder(codec) == expected


def test_ffmpeg_error_message_mapping():
    assert ffmpeg_error_message("x: Permission denied\n") == (
        "Failed to trim video: Permission denied when accessing files."
    )
    assert ffmpeg_error_message("something odd") == "Failed to trim video: Check console logs for details."


class _FakeProc:
    def __init__(self, returncode, stderr_file, stderr=b""):
        self.returncode = returncode
        stderr_file.write(stderr)

    def poll(self):
        return self.returncode

    def wait(self):
        return self.returncode


def _fake_trim_tools(monkeypatch, tmp_path, returncode, err_output=b""):
    calls = []

    def fake_spawn(cmd, stderr):
        calls.append(cmd)
        if returncode == 0:
            (tmp_path / "clip_temp.mp4").write_bytes(b"trimmed")
        return _FakeProc(returncode, stderr, err_output)

    monkeypatch.setattr(ffmpeg, "require_ffmpeg", lambda bin, feature: None)
    monkeypatch.setattr(ffmpeg, "probe_video_codec", lambda path, ffprobe_bin="ffprobe": "vp9")
    monkeypatch.setattr(ffmpeg, "spawn", fake_spawn)
    return calls


def test_trim_success_reencodes_and_reports_done(tmp_path, monkeypatch):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"original")
    calls = _fake_trim_tools(monkeypatch, tmp_path, 0)
    progress = ProgressCounter()

    trim_video(video, 1.5, 4.0, progress=progress, poll_interval=0.01)

    cmd = calls[0]
    assert cmd[cmd.index("-ss") + 1] == "1.5"
    assert cmd[cmd.index("-t") + 1] == "2.5"
    assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
    assert cmd[cmd.index("-preset") + 1] == "good"
    assert "-progress" in cmd
    assert video.read_bytes() == b"trimmed"
    assert progress.get() == 100
    assert sorted(x.name for x in tmp_path.iterdir()) == ["clip.mp4"]


def test_trim_failure_maps_stderr_and_sets_minus_one(tmp_path, monkeypatch):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"original")
    _fake_trim_tools(monkeypatch, tmp_path, 1, err_output=b"Invalid data found when processing input")
    progress = ProgressCounter()

    with pytest.raises(MediaToolError, match="corrupted or in an unsupported format"):
        trim_video(video, 0, 1, progress=progress, poll_interval=0.01)
    assert progress.get() == -1
    assert video.read_bytes() == b"original"


def test_read_out_time_uses_latest_value(tmp_path):
    f = tmp_path / "progress.txt"
    f.write_text("out_time_ms=1000000\nprogress=continue\nout_time_ms=2500000\n", encoding="utf-8")
    assert editing._read_out_time(f) == 2.5
    assert editing._read_out_time(tmp_path / "missing.txt") is None


def test_progress_counter():
    c = ProgressCounter()
    c.set(55.7)
    assert c.get() == 55
    c.reset()
    assert c.get() == 0


def test_images_over_pixel_limit_are_reported(tmp_path, monkeypatch):
    p = make_image(tmp_path / "big.png", size=(400, 400))
    buf = BytesIO()
    Image.new("RGB", (400, 400)).save(buf, format="PNG")
    url = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()
    before = p.read_bytes()
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(FileOperationError, match="Failed to open image"):
        crop_image(p, CropParams(x=0, y=0, width=10, height=10))
    with pytest.raises(UserInputError, match="not a readable image"):
        save_cropped_image(p, url)
    assert p.read_bytes() == before
    assert sorted(x.name for x in tmp_path.iterdir()) == ["big.png"]
