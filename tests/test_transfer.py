"""Tests for transfer module."""

import asyncio
from pathlib import Path

import pytest

from sftp_fetcher.config.settings import TransferSettings
from sftp_fetcher.transfer.engine import TransferEngine, local_path_for
from sftp_fetcher.transfer.models import RunResult, TransferOutcome, TransferStatus

from conftest import FakeSFTPSession


class TestLocalPathFor:
    """Tests for remote-to-local path mapping."""

    def test_uses_base_name(self, tmp_path: Path) -> None:
        """Test that remote directories are discarded."""
        assert local_path_for("/data/a.txt", tmp_path) == tmp_path / "a.txt"

    def test_relative_remote_path(self, tmp_path: Path) -> None:
        """Test mapping of a relative remote path."""
        assert local_path_for("reports/q1.csv", tmp_path) == tmp_path / "q1.csv"

    def test_same_name_collides(self, tmp_path: Path) -> None:
        """Test that equal base names map to the same local file."""
        assert local_path_for("/x/f.txt", tmp_path) == local_path_for("/y/f.txt", tmp_path)


class TestTransferEngine:
    """Tests for TransferEngine.run."""

    @pytest.mark.asyncio
    async def test_all_files_succeed(
        self,
        fake_session: FakeSFTPSession,
        remote_files: dict[str, bytes],
        tmp_path: Path,
    ) -> None:
        """Test N successes in request order with matching content."""
        engine = TransferEngine(TransferSettings(block_size=7))
        paths = ["/data/a.txt", "/data/b.txt", "/other/c.bin"]

        result = await engine.run(fake_session, paths, tmp_path)

        assert [o.remote_path for o in result.outcomes] == paths
        assert all(o.status == TransferStatus.SUCCESS for o in result.outcomes)
        assert result.succeeded is True
        assert result.skipped == 0
        for path in paths:
            local = tmp_path / Path(path).name
            assert local.read_bytes() == remote_files[path]
        assert result.bytes_transferred == sum(len(remote_files[p]) for p in paths)
        assert all(h.close_calls == 1 for h in fake_session.handles)

    @pytest.mark.asyncio
    async def test_example_two_files(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test the a.txt / b.txt example."""
        engine = TransferEngine()

        result = await engine.run(fake_session, ["/data/a.txt", "/data/b.txt"], tmp_path)

        assert [(Path(o.local_path).name, o.status) for o in result.outcomes] == [
            ("a.txt", TransferStatus.SUCCESS),
            ("b.txt", TransferStatus.SUCCESS),
        ]
        assert (tmp_path / "a.txt").exists()
        assert (tmp_path / "b.txt").exists()

    @pytest.mark.asyncio
    async def test_empty_list(self, fake_session: FakeSFTPSession, tmp_path: Path) -> None:
        """Test that an empty list yields no outcomes."""
        result = await TransferEngine().run(fake_session, [], tmp_path)

        assert result.outcomes == []
        assert result.connection_error is None
        assert fake_session.opened == []

    @pytest.mark.asyncio
    async def test_missing_first_file_stops_run(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test the missing.txt example: one open_failed outcome only."""
        result = await TransferEngine().run(
            fake_session, ["/missing.txt", "/data/b.txt"], tmp_path
        )

        assert len(result.outcomes) == 1
        assert result.outcomes[0].status == TransferStatus.OPEN_FAILED
        assert Path(result.outcomes[0].local_path).name == "missing.txt"
        assert result.outcomes[0].error is not None
        assert result.skipped == 1
        assert not (tmp_path / "missing.txt").exists()
        assert not (tmp_path / "b.txt").exists()
        assert fake_session.opened == ["/missing.txt"]

    @pytest.mark.asyncio
    async def test_failure_at_position_k(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test that a failure at position k yields exactly k outcomes."""
        paths = ["/data/a.txt", "/data/b.txt", "/nope.txt", "/other/c.bin"]

        result = await TransferEngine().run(fake_session, paths, tmp_path)

        assert [o.status for o in result.outcomes] == [
            TransferStatus.SUCCESS,
            TransferStatus.SUCCESS,
            TransferStatus.OPEN_FAILED,
        ]
        assert result.skipped == 1
        assert result.succeeded is False
        assert not (tmp_path / "c.bin").exists()

    @pytest.mark.asyncio
    async def test_create_failure_releases_remote_handle(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test create_failed when the local directory does not exist."""
        local_dir = tmp_path / "does-not-exist"

        result = await TransferEngine().run(
            fake_session, ["/data/a.txt", "/data/b.txt"], local_dir
        )

        assert len(result.outcomes) == 1
        assert result.outcomes[0].status == TransferStatus.CREATE_FAILED
        assert isinstance(result.outcomes[0].error, OSError)
        assert len(fake_session.handles) == 1
        assert fake_session.handles[0].closed is True

    @pytest.mark.asyncio
    async def test_copy_failure_leaves_partial_file(
        self,
        remote_files: dict[str, bytes],
        tmp_path: Path,
    ) -> None:
        """Test copy_failed releases handles and keeps partial output."""
        session = FakeSFTPSession(remote_files, fail_copy={"/data/b.txt": 30})
        engine = TransferEngine(TransferSettings(block_size=10))

        result = await engine.run(session, ["/data/a.txt", "/data/b.txt", "/other/c.bin"], tmp_path)

        assert [o.status for o in result.outcomes] == [
            TransferStatus.SUCCESS,
            TransferStatus.COPY_FAILED,
        ]
        assert "Connection lost" in result.outcomes[1].error_message
        assert (tmp_path / "b.txt").exists()
        assert (tmp_path / "b.txt").read_bytes() == remote_files["/data/b.txt"][:30]
        assert all(h.close_calls == 1 for h in session.handles)
        assert not (tmp_path / "c.bin").exists()

    @pytest.mark.asyncio
    async def test_continue_past_failures(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test stop_on_error disabled attempts every file."""
        engine = TransferEngine(TransferSettings(stop_on_error=False))

        result = await engine.run(
            fake_session, ["/missing.txt", "/data/b.txt"], tmp_path
        )

        assert [o.status for o in result.outcomes] == [
            TransferStatus.OPEN_FAILED,
            TransferStatus.SUCCESS,
        ]
        assert result.skipped == 0
        assert (tmp_path / "b.txt").exists()

    @pytest.mark.asyncio
    async def test_duplicates_and_collisions_overwrite(self, tmp_path: Path) -> None:
        """Test that same-named files overwrite each other in order."""
        session = FakeSFTPSession({"/x/f.txt": b"first", "/y/f.txt": b"second"})

        result = await TransferEngine().run(
            session, ["/x/f.txt", "/y/f.txt", "/x/f.txt"], tmp_path
        )

        assert len(result.outcomes) == 3
        assert result.succeeded is True
        assert (tmp_path / "f.txt").read_bytes() == b"first"

    @pytest.mark.asyncio
    async def test_existing_file_is_overwritten(
        self,
        fake_session: FakeSFTPSession,
        tmp_path: Path,
    ) -> None:
        """Test that a pre-existing local file is truncated."""
        (tmp_path / "a.txt").write_bytes(b"x" * 1000)

        await TransferEngine().run(fake_session, ["/data/a.txt"], tmp_path)

        assert (tmp_path / "a.txt").read_bytes() == b"alpha contents\n"

    @pytest.mark.asyncio
    async def test_overlapping_runs_race_on_same_local_file(self, tmp_path: Path) -> None:
        """Test two concurrent runs writing the same local file name."""
        first = b"A" * 64
        second = b"B" * 64
        session_one = FakeSFTPSession({"/one/same.txt": first}, yield_between_reads=True)
        session_two = FakeSFTPSession({"/two/same.txt": second}, yield_between_reads=True)
        engine = TransferEngine(TransferSettings(block_size=4))

        results = await asyncio.gather(
            engine.run(session_one, ["/one/same.txt"], tmp_path),
            engine.run(session_two, ["/two/same.txt"], tmp_path),
        )

        assert all(r.succeeded for r in results)
        assert (tmp_path / "same.txt").read_bytes() in (first, second)


class TestTransferOutcome:
    """Tests for TransferOutcome."""

    def test_to_dict_success(self) -> None:
        """Test converting success outcome to dictionary."""
        outcome = TransferOutcome(
            remote_path="/data/a.txt",
            local_path="./a.txt",
            status=TransferStatus.SUCCESS,
            bytes_transferred=15,
            duration_ms=3,
        )

        data = outcome.to_dict()

        assert data["status"] == "success"
        assert data["bytes_transferred"] == 15
        assert "error_message" not in data

    def test_to_dict_failure(self) -> None:
        """Test converting failure outcome to dictionary."""
        outcome = TransferOutcome(
            remote_path="/missing.txt",
            local_path="./missing.txt",
            status=TransferStatus.OPEN_FAILED,
            error=FileNotFoundError("No such file"),
        )

        data = outcome.to_dict()

        assert data["status"] == "open_failed"
        assert data["error_message"] == "No such file"

    def test_status_values(self) -> None:
        """Test TransferStatus enum values."""
        assert TransferStatus.SUCCESS.value == "success"
        assert TransferStatus.OPEN_FAILED.value == "open_failed"
        assert TransferStatus.CREATE_FAILED.value == "create_failed"
        assert TransferStatus.COPY_FAILED.value == "copy_failed"


class TestRunResult:
    """Tests for RunResult."""

    def test_connection_failure(self) -> None:
        """Test a connection-phase failure result."""
        error = ConnectionError("refused")

        result = RunResult.connection_failure(error)

        assert result.is_connection_failure is True
        assert result.outcomes == []
        assert result.succeeded is False
        assert result.finished_at is not None
        assert result.to_dict()["connection_error"] == "refused"

    def test_empty_run_succeeds(self) -> None:
        """Test that a run with no outcomes and no error succeeded."""
        result = RunResult()

        assert result.succeeded is True
        assert result.is_connection_failure is False
        assert result.duration_ms == 0
