import pytest

from caption_studio.core.errors import FileOperationError
from caption_studio.files.media import list_media_files
from caption_studio.files.projects import (
    delete_project,
    duplicate_directory,
    ensure_within,
    list_projects,
    working_root,
)


def _names(files):
    return sorted(f.relative_path for f in files)


def test_duplicate_lists_same_media_as_source(tmp_path, source_dir):
    root = working_root(tmp_path / "data", "working")
    dest = duplicate_directory(source_dir, root)

    assert dest == root / "shoot"
    assert _names(list_media_files(dest)) == _names(list_media_files(source_dir))
    assert (dest / "a.txt").read_text(encoding="utf-8") == "a red frame"
    # source untouched
    assert (source_dir / "a.jpg").exists()


def test_duplicate_again_clears_leftovers(tmp_path, source_dir):
    root = tmp_path / "working"
    dest = duplicate_directory(source_dir, root)
    (dest / "stale.jpg").write_bytes(b"old")

    dest = duplicate_directory(source_dir, root)
    assert not (dest / "stale.jpg").exists()
    assert (dest / "a.jpg").exists()


def test_duplicate_missing_source(tmp_path):
    with pytest.raises(FileOperationError, match="does not exist"):
        duplicate_directory(tmp_path / "nope", tmp_path / "working")


def test_duplicate_refuses_working_root_inside_source(tmp_path, source_dir):
    with pytest.raises(FileOperationError, match="overlaps"):
        duplicate_directory(source_dir, source_dir / "working")


def test_list_projects_reports_size_and_dates(tmp_path, source_dir):
    root = tmp_path / "working"
    duplicate_directory(source_dir, root)
    (root / "loose.txt").write_text("ignored", encoding="utf-8")

    projects = list_projects(root)
    assert [p.name for p in projects] == ["shoot"]
    assert projects[0].size_bytes > 0
    assert len(projects[0].modified) == len("2024-01-01 00:00:00")


def test_list_projects_creates_missing_root(tmp_path):
    root = tmp_path / "working"
    assert list_projects(root) == []
    assert root.is_dir()


def test_delete_project_removes_it_from_listing(tmp_path, source_dir):
    root = tmp_path / "working"
    dest = duplicate_directory(source_dir, root)

    delete_project(root, dest)
    assert not dest.exists()
    assert list_projects(root) == []


def test_delete_outside_root_is_refused(tmp_path, source_dir):
    root = tmp_path / "working"
    root.mkdir()
    with pytest.raises(FileOperationError, match="Security error"):
        delete_project(root, source_dir)
    assert source_dir.exists()


def test_delete_root_itself_is_refused(tmp_path):
    root = tmp_path / "working"
    root.mkdir()
    with pytest.raises(FileOperationError):
        delete_project(root, root)


def test_ensure_within_rejects_parent_traversal(tmp_path):
    root = tmp_path / "working"
    (root / "p").mkdir(parents=True)
    assert ensure_within(root, root / "p") == (root / "p").resolve()
    with pytest.raises(FileOperationError):
        ensure_within(root, root / "p" / ".." / ".." / "elsewhere")


def test_working_root_under_a_file_is_reported(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(FileOperationError, match="Failed to create working directory"):
        working_root(blocker, "working")
    with pytest.raises(FileOperationError):
        list_projects(blocker / "working")
