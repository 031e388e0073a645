import os
import sys

import pytest

from asyncblobput import BlobNotFoundError, LocalFileAdapter, ObjectExistsError

pytestmark = pytest.mark.local

LOCAL_BUCKET = "test_bucket"


async def chunks_of(*parts: bytes):
    for part in parts:
        yield part


async def failing_chunks():
    yield b"partial"
    raise OSError("source broke")


@pytest.mark.asyncio
async def test_upload_stream_and_download(tmp_path):
    adapter = LocalFileAdapter(str(tmp_path))
    blob = adapter.get_container(LOCAL_BUCKET).get_blob("a/b/c.txt")
    await blob.upload_stream(chunks_of(b"he", b"llo"), 5)

    assert await blob.download() == b"hello"
    assert (tmp_path / LOCAL_BUCKET / "a" / "b" / "c.txt").read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_upload_stream_is_create_only(tmp_path):
    adapter = LocalFileAdapter(str(tmp_path))
    blob = adapter.get_container(LOCAL_BUCKET).get_blob("exists.txt")
    await blob.upload_stream(chunks_of(b"data"), 4)

    with pytest.raises(ObjectExistsError) as excinfo:
        await blob.upload_stream(chunks_of(b"newdata"), 7)

    assert excinfo.value.bucket == LOCAL_BUCKET
    assert excinfo.value.object_name == "exists.txt"
    assert isinstance(excinfo.value, FileExistsError)
    assert await blob.download() == b"data"


@pytest.mark.asyncio
async def test_failed_source_removes_partial_file(tmp_path):
    adapter = LocalFileAdapter(str(tmp_path))
    blob = adapter.get_container(LOCAL_BUCKET).get_blob("partial.txt")

    with pytest.raises(OSError, match="source broke"):
        await blob.upload_stream(failing_chunks(), 100)

    assert not (tmp_path / LOCAL_BUCKET / "partial.txt").exists()


@pytest.mark.asyncio
async def test_download_missing_blob(tmp_path):
    adapter = LocalFileAdapter(str(tmp_path))
    blob = adapter.get_container(LOCAL_BUCKET).get_blob("missing.txt")
    with pytest.raises(BlobNotFoundError):
        await blob.download()


def test_local_path_traversal_protection(tmp_path):
    adapter = LocalFileAdapter(str(tmp_path))
    container_handle = adapter.get_container(LOCAL_BUCKET)

    with pytest.raises(ValueError) as excinfo:
        container_handle.get_blob("../../etc/passwd")
    assert "escapes base directory" in str(excinfo.value)

    with pytest.raises(ValueError):
        adapter.get_container("../outside_container")


def test_symlink_outside_protection(tmp_path):
    if not hasattr(os, "symlink"):
        pytest.skip("Symlinks not supported on this platform")
    if sys.platform == "win32":
        pytest.skip("Symlink creation needs extra privileges on Windows")

    base = tmp_path / "store"
    adapter = LocalFileAdapter(str(base))
    adapter.get_container(LOCAL_BUCKET)

    # Create a directory outside the store and link to it from inside the bucket
    outside_dir = tmp_path / "outside"
    outside_dir.mkdir()
    (base / LOCAL_BUCKET / "link").symlink_to(outside_dir, target_is_directory=True)

    container_handle = adapter.get_container(LOCAL_BUCKET)
    with pytest.raises(ValueError):
        container_handle.get_blob("link/secret.txt")
