"""Tests for chunking and per-chunk digests."""
import hashlib
import math

import pytest

from netdisk_uploader.services.cache import ChunkCache
from netdisk_uploader.services.chunker import Chunker, compute_chunk_digests, iter_chunks, write_chunk_files


def _write(path, size):
    data = bytes((i * 7) % 251 for i in range(size))
    path.write_bytes(data)
    return data


@pytest.mark.parametrize("size", [1, 10, 16, 17, 100])
def test_chunk_count_is_ceil_of_size(tmp_path, size):
    source = tmp_path / "data.bin"
    _write(source, size)

    digests, total = compute_chunk_digests(source, chunk_size=16)

    assert total == size
    assert len(digests) == math.ceil(size / 16)


def test_empty_file_has_no_chunks(tmp_path):
    source = tmp_path / "empty.bin"
    source.write_bytes(b"")

    assert compute_chunk_digests(source, chunk_size=16) == ([], 0)


def test_digests_are_md5_of_each_chunk(tmp_path):
    source = tmp_path / "data.bin"
    data = _write(source, 40)

    digests, _ = compute_chunk_digests(source, chunk_size=16)

    expected = [hashlib.md5(data[i:i + 16]).hexdigest() for i in range(0, 40, 16)]
    assert digests == expected
    assert compute_chunk_digests(source, chunk_size=16)[0] == digests


def test_iter_chunks_rejects_non_positive_size(tmp_path):
    source = tmp_path / "data.bin"
    _write(source, 4)

    with pytest.raises(ValueError):
        list(iter_chunks(source, chunk_size=0))


def test_chunk_files_reassemble_the_source(tmp_path):
    source = tmp_path / "data.bin"
    data = _write(source, 50)
    cache = ChunkCache(tmp_path / "cache")

    with cache.session(source) as session:
        chunks = write_chunk_files(source, session, chunk_size=16)
        assert [c.index for c in chunks] == [0, 1, 2, 3]
        assert b"".join(c.path.read_bytes() for c in chunks) == data
        assert chunks[-1].path.stat().st_size == 2
        assert [c.digest for c in chunks] == compute_chunk_digests(source, 16)[0]

    assert not any(c.path.exists() for c in chunks)


@pytest.mark.asyncio
async def test_async_chunker_matches_sync_pass(tmp_path):
    source = tmp_path / "data.bin"
    _write(source, 33)
    chunker = Chunker(chunk_size=8)
    cache = ChunkCache(tmp_path / "cache")

    digests, size = await chunker.digest(source)
    with cache.session(source) as session:
        chunks = await chunker.materialize(source, session)

    assert size == 33
    assert [c.digest for c in chunks] == digests
