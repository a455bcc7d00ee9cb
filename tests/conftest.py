import pytest
from PIL import Image

from caption_studio.core.settings import settings
from caption_studio.media.thumbnails import ThumbnailCache


def make_image(path, size=(64, 48), color=(200, 30, 30), fmt=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


@pytest.fixture
def source_dir(tmp_path):
    """A user folder: two images (one captioned), one video, junk and hidden files."""
    src = tmp_path / "shoot"
    make_image(src / "a.jpg")
    (src / "a.txt").write_text("a red frame", encoding="utf-8")
    make_image(src / "nested" / "b.png", size=(30, 60))
    (src / "clip.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42")
    (src / "notes.md").write_text("not media", encoding="utf-8")
    (src / "._a.jpg").write_bytes(b"appledouble")
    (src / ".hidden").mkdir()
    make_image(src / ".hidden" / "c.jpg")
    return src


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the service settings at a throwaway data dir."""
    d = tmp_path / "appdata"
    monkeypatch.setattr(settings, "data_dir", d)
    return d


@pytest.fixture
def cache():
    return ThumbnailCache(max_entries=10)
