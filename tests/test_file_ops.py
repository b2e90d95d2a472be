"""Tests for atomic JSON persistence helpers."""

import json

import pytest

from compliance_pulse.file_ops import (
    FileTooLargeError,
    atomic_write_json,
    read_bytes_limited,
    read_json,
)


class TestAtomicWriteJson:
    def test_creates_parent_dirs(self, tmp_path):
        target = tmp_path / "a" / "b" / "data.json"
        atomic_write_json(target, [1, 2, 3])
        assert json.loads(target.read_text()) == [1, 2, 3]

    def test_no_temp_files_left(self, tmp_path):
        target = tmp_path / "data.json"
        atomic_write_json(target, {"a": 1})
        atomic_write_json(target, {"a": 2})
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]
        assert read_json(target) == {"a": 2}

    def test_failed_write_keeps_old_content(self, tmp_path):
        target = tmp_path / "data.json"
        atomic_write_json(target, {"ok": True})
        with pytest.raises(TypeError):
            atomic_write_json(target, {"bad": object()})
        assert read_json(target) == {"ok": True}
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_replace_failure_cleans_temp(self, tmp_path, monkeypatch):
        target = tmp_path / "data.json"

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("compliance_pulse.file_ops.os.replace", boom)
        with pytest.raises(OSError):
            atomic_write_json(target, [1])
        assert list(tmp_path.iterdir()) == []


class TestReadBytesLimited:
    def test_reads(self, tmp_path):
        path = tmp_path / "f.py"
        path.write_bytes(b"abc")
        assert read_bytes_limited(path, 10) == b"abc"

    def test_too_large(self, tmp_path):
        path = tmp_path / "f.py"
        path.write_bytes(b"x" * 20)
        with pytest.raises(FileTooLargeError):
            read_bytes_limited(path, 10)

    def test_too_large_is_os_error(self):
        assert issubclass(FileTooLargeError, OSError)
