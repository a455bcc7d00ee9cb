from caption_studio.files.captions import caption_path_for, has_caption, read_caption, write_caption


def test_caption_path_replaces_extension(tmp_path):
    assert caption_path_for(tmp_path / "clip.final.mp4") == tmp_path / "clip.final.txt"


def test_missing_caption_reads_empty(tmp_path):
    assert read_caption(tmp_path / "a.jpg") == ""
    assert has_caption(tmp_path / "a.jpg") is False


def test_write_then_read_is_exact(tmp_path):
    text = "line one\r\nline two, with ünïcode\n"
    cap = write_caption(tmp_path / "a.jpg", text)

    assert cap == tmp_path / "a.txt"
    assert read_caption(tmp_path / "a.jpg") == text
    assert has_caption(tmp_path / "a.jpg") is True


def test_write_overwrites_whole_file(tmp_path):
    write_caption(tmp_path / "a.jpg", "a much longer first caption")
    write_caption(tmp_path / "a.jpg", "short")
    assert read_caption(tmp_path / "a.jpg") == "short"


def test_empty_caption_is_still_a_sidecar(tmp_path):
    write_caption(tmp_path / "a.jpg", "")
    assert has_caption(tmp_path / "a.jpg") is True
    assert read_caption(tmp_path / "a.jpg") == ""
