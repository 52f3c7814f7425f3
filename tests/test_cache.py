"""Tests for chunk cache lifecycle."""
import os

import pytest

from netdisk_uploader.services.cache import ChunkCache, resolve_cache_dir


def test_resolve_cache_dir_creates_override(tmp_path):
    target = tmp_path / "nested" / "chunks"

    assert resolve_cache_dir(target) == target
    assert target.is_dir()


def test_resolve_cache_dir_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    directory = resolve_cache_dir()

    assert directory == tmp_path / ".chunks"
    assert directory.is_dir()


def test_chunk_names_carry_basename_pid_and_index(tmp_path):
    cache = ChunkCache(tmp_path)

    with cache.session(tmp_path / "movie.mp4") as session:
        name = session.path_for(3).name

    assert name.startswith(f"movie.mp4.{os.getpid()}.")
    assert name.endswith(".chunk.3")


def test_sessions_for_same_basename_do_not_collide(tmp_path):
    cache = ChunkCache(tmp_path)

    with cache.session(tmp_path / "a" / "x.bin") as first, cache.session(tmp_path / "b" / "x.bin") as second:
        assert first.path_for(0) != second.path_for(0)


def test_session_removes_files_on_error(tmp_path):
    cache = ChunkCache(tmp_path)

    with pytest.raises(RuntimeError):
        with cache.session(tmp_path / "x.bin") as session:
            path = session.path_for(0)
            path.write_bytes(b"chunk")
            raise RuntimeError("boom")

    assert not path.exists()
    assert tmp_path.is_dir()


def test_cleanup_ignores_missing_files(tmp_path):
    cache = ChunkCache(tmp_path)

    with cache.session(tmp_path / "x.bin") as session:
        written = session.path_for(0)
        written.write_bytes(b"chunk")
        session.path_for(1)  # never written

    assert not written.exists()


def test_ensure_recreates_deleted_directory(tmp_path):
    directory = tmp_path / "cache"
    cache = ChunkCache(directory)
    cache.ensure()
    directory.rmdir()

    assert cache.ensure().is_dir()
