"""Shared fixtures: in-memory stand-ins for an SFTP session."""

import asyncio
from typing import Optional

import asyncssh
import pytest


class FakeRemoteFile:
    """Remote file handle serving bytes from memory."""

    def __init__(
        self,
        data: bytes,
        fail_after: Optional[int] = None,
        yield_between_reads: bool = False,
    ) -> None:
        self._data = data
        self._pos = 0
        self._fail_after = fail_after
        self._yield = yield_between_reads
        self.closed = False
        self.close_calls = 0

    async def read(self, size: int = -1) -> bytes:
        if self._yield:
            await asyncio.sleep(0)
        if self._fail_after is not None and self._pos >= self._fail_after:
            raise OSError("Connection lost")
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk

    async def close(self) -> None:
        self.closed = True
        self.close_calls += 1


class FakeSFTPSession:
    """Session whose remote files live in a dict."""

    def __init__(
        self,
        files: dict[str, bytes],
        fail_copy: Optional[dict[str, int]] = None,
        yield_between_reads: bool = False,
    ) -> None:
        self.files = files
        self.fail_copy = fail_copy or {}
        self.yield_between_reads = yield_between_reads
        self.opened: list[str] = []
        self.handles: list[FakeRemoteFile] = []

    async def open(self, remote_path: str) -> FakeRemoteFile:
        self.opened.append(remote_path)
        if remote_path not in self.files:
            raise asyncssh.SFTPNoSuchFile(f"No such file: {remote_path}")
        handle = FakeRemoteFile(
            self.files[remote_path],
            fail_after=self.fail_copy.get(remote_path),
            yield_between_reads=self.yield_between_reads,
        )
        self.handles.append(handle)
        return handle


@pytest.fixture
def remote_files() -> dict[str, bytes]:
    """Remote file contents keyed by path."""
    return {
        "/data/a.txt": b"alpha contents\n",
        "/data/b.txt": b"bravo contents\n" * 10,
        "/other/c.bin": bytes(range(256)) * 4,
    }


@pytest.fixture
def fake_session(remote_files: dict[str, bytes]) -> FakeSFTPSession:
    """A fake session serving the remote_files fixture."""
    return FakeSFTPSession(remote_files)
