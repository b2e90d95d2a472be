"""Tests for tracked-file selection."""

from compliance_pulse.config import DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS
from compliance_pulse.validation import discover_files, is_tracked_path


class TestIsTrackedPath:
    def test_source_file(self, project):
        assert is_tracked_path(project / "pkg" / "clean.py", project, DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS)

    def test_untracked_extension(self, project):
        assert not is_tracked_path(project / "README.md", project, DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS)

    def test_ignored_dir(self, project):
        path = project / "node_modules" / "lib.js"
        assert not is_tracked_path(path, project, DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS)

    def test_hidden_dir_and_file(self, project):
        assert not is_tracked_path(project / ".pulse" / "x.py", project, (".py",), ())
        assert not is_tracked_path(project / ".hidden.py", project, (".py",), ())

    def test_outside_root(self, project, tmp_path):
        assert not is_tracked_path(tmp_path / "other.py", project, (".py",), ())

    def test_deleted_path_still_classified(self, project):
        assert is_tracked_path(project / "pkg" / "gone.py", project, (".py",), ())


class TestDiscoverFiles:
    def test_finds_sorted_tracked_files(self, project):
        found = discover_files(project, DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS)
        assert found == sorted(found)
        assert [p.rsplit("/", 1)[-1] for p in found] == ["clean.py", "dirty.py"]

    def test_skips_hidden_dirs(self, project):
        (project / ".pulse").mkdir()
        (project / ".pulse" / "x.py").write_text("print(1)\n")
        found = discover_files(project, (".py",), ())
        assert not any(".pulse" in p for p in found)
