"""Tests for session credential files and the env file manager."""

import errno
import logging
import os
import stat
from pathlib import Path

import pytest

from queue_manager_core.core.env_file import (
    EnvFileManager,
    create_session_env_file,
    render_env_content,
)
from queue_manager_core.core.errors import (
    DirectoryCreateError,
    EnvFileAppError,
    FileWriteError,
    InvalidArgumentError,
)


def _mode(path: str) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


def _create(tmp_path: Path, session_id: str = "abc-123", credentials=None):
    return create_session_env_file(
        session_id=session_id,
        container_path=str(tmp_path / "container"),
        host_path="/host/session-env",
        credentials=credentials if credentials is not None else {"API_TOKEN": "secret-token"},
    )


class TestRenderEnvContent:
    def test_renders_lines_in_insertion_order(self) -> None:
        content = render_env_content({"B": "2", "A": "1"})

        assert content == "B=2\nA=1\n"

    def test_skips_empty_and_missing_values(self) -> None:
        content = render_env_content({"KEEP": "x", "EMPTY": "", "NONE": None, "ZERO": 0})

        assert content == "KEEP=x\nZERO=0\n"

    def test_no_entries_is_single_newline(self) -> None:
        assert render_env_content({}) == "\n"
        assert render_env_content({"EMPTY": ""}) == "\n"

    def test_values_are_not_quoted(self) -> None:
        assert render_env_content({"URL": "https://x?a=b c"}) == "URL=https://x?a=b c\n"


class TestCreateSessionEnvFile:
    def test_writes_file_with_owner_only_permissions(self, tmp_path: Path) -> None:
        env_file = _create(tmp_path, credentials={"API_TOKEN": "t", "API_EMAIL": "user@example.com"})

        assert env_file.container_path == str(tmp_path / "container" / "session-abc-123.env")
        assert env_file.host_path == "/host/session-env/session-abc-123.env"
        assert Path(env_file.container_path).read_text() == "API_TOKEN=t\nAPI_EMAIL=user@example.com\n"
        assert _mode(env_file.container_path) == 0o600

    def test_existing_file_permissions_are_tightened(self, tmp_path: Path) -> None:
        target = tmp_path / "container" / "session-abc-123.env"
        target.parent.mkdir()
        target.write_text("STALE=1\n")
        os.chmod(target, 0o644)

        env_file = _create(tmp_path)

        assert _mode(env_file.container_path) == 0o600
        assert Path(env_file.container_path).read_text() == "API_TOKEN=secret-token\n"

    def test_filters_empty_credentials(self, tmp_path: Path) -> None:
        env_file = _create(tmp_path, credentials={"A": "1", "B": "", "C": None})

        content = Path(env_file.container_path).read_text()
        assert content == "A=1\n"
        assert "B=" not in content
        assert "C=" not in content

    def test_creates_nested_directory(self, tmp_path: Path) -> None:
        nested = tmp_path / "a" / "b" / "c"

        env_file = create_session_env_file(
            session_id="s",
            container_path=str(nested),
            host_path="/host",
            credentials={},
        )

        assert nested.is_dir()
        assert Path(env_file.container_path).read_text() == "\n"

    @pytest.mark.parametrize(
        "overrides, argument",
        [
            ({"session_id": ""}, "session_id"),
            ({"session_id": None}, "session_id"),
            ({"container_path": ""}, "container_path"),
            ({"host_path": ""}, "host_path"),
            ({"credentials": None}, "credentials"),
            ({"credentials": ["A=1"]}, "credentials"),
        ],
    )
    def test_rejects_invalid_arguments(self, tmp_path: Path, overrides: dict, argument: str) -> None:
        kwargs = {
            "session_id": "s",
            "container_path": str(tmp_path),
            "host_path": "/host",
            "credentials": {},
        }
        kwargs.update(overrides)

        with pytest.raises(InvalidArgumentError) as exc_info:
            create_session_env_file(**kwargs)

        assert exc_info.value.details == {"argument": argument}

    def test_directory_failure_is_fatal(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        with pytest.raises(DirectoryCreateError) as exc_info:
            create_session_env_file(
                session_id="s",
                container_path=str(blocker / "sub"),
                host_path="/host",
                credentials={"A": "1"},
            )

        assert exc_info.value.code == "directory_create_failed"
        assert isinstance(exc_info.value, EnvFileAppError)

    def test_write_failure_is_fatal(self, tmp_path: Path) -> None:
        container = tmp_path / "container"
        # A directory occupying the file's path makes the open fail.
        (container / "session-s.env").mkdir(parents=True)

        with pytest.raises(FileWriteError) as exc_info:
            create_session_env_file(
                session_id="s",
                container_path=str(container),
                host_path="/host",
                credentials={"A": "1"},
            )

        assert exc_info.value.code == "file_write_failed"

    def test_partial_write_is_removed(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        real_fdopen = os.fdopen

        class _DiskFull:
            def __init__(self, handle) -> None:
                self._handle = handle

            def fileno(self) -> int:
                return self._handle.fileno()

            def write(self, content: str) -> None:
                self._handle.write(content[:4])
                self._handle.flush()
                raise OSError(errno.ENOSPC, "No space left on device")

            def __enter__(self):
                return self

            def __exit__(self, *exc_info) -> None:
                self._handle.close()

        monkeypatch.setattr(os, "fdopen", lambda fd, *args, **kwargs: _DiskFull(real_fdopen(fd, *args, **kwargs)))

        with pytest.raises(FileWriteError) as exc_info:
            _create(tmp_path)

        assert exc_info.value.message == "Failed to write env file: No space left on device"
        assert not (tmp_path / "container" / "session-abc-123.env").exists()


class TestSessionEnvFileCleanup:
    def test_cleanup_removes_file(self, tmp_path: Path) -> None:
        env_file = _create(tmp_path)

        env_file.cleanup()

        assert not Path(env_file.container_path).exists()
        assert env_file.removed is True

    def test_cleanup_twice_is_safe(self, tmp_path: Path) -> None:
        env_file = _create(tmp_path)

        env_file.cleanup()
        env_file.cleanup()

        assert not Path(env_file.container_path).exists()

    def test_context_manager_cleans_up(self, tmp_path: Path) -> None:
        with _create(tmp_path) as env_file:
            assert Path(env_file.container_path).exists()

        assert not Path(env_file.container_path).exists()

    def test_close_is_cleanup(self, tmp_path: Path) -> None:
        env_file = _create(tmp_path)

        env_file.close()

        assert not Path(env_file.container_path).exists()

    def test_cleanup_failure_is_logged_not_raised(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        env_file = _create(tmp_path)

        def _deny(path):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(os, "unlink", _deny)

        with caplog.at_level(logging.ERROR, logger="queue_manager_core.core.env_file"):
            env_file.cleanup()

        assert env_file.removed is False
        assert any(r.getMessage() == "env_file.cleanup_failed" for r in caplog.records)


class TestEnvFileManager:
    def _manager(self, tmp_path: Path) -> EnvFileManager:
        return EnvFileManager(container_path=str(tmp_path / "env"), host_path="/host/env")

    def test_creates_base_directory_eagerly(self, tmp_path: Path) -> None:
        self._manager(tmp_path)

        assert (tmp_path / "env").is_dir()

    def test_unavailable_directory_is_logged_not_fatal(
        self,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")

        with caplog.at_level(logging.WARNING, logger="queue_manager_core.core.env_file"):
            manager = EnvFileManager(container_path=str(blocker / "env"), host_path="/host")

        assert manager.size() == 0
        assert any(r.getMessage() == "env_file.directory_unavailable" for r in caplog.records)

    @pytest.mark.parametrize("kwargs", [{"container_path": "", "host_path": "/h"}, {"container_path": "/c", "host_path": ""}])
    def test_requires_both_paths(self, kwargs: dict) -> None:
        with pytest.raises(InvalidArgumentError):
            EnvFileManager(**kwargs)

    def test_create_tracks_file(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)

        env_file = manager.create("session-123", {"API_TOKEN": "secret"})

        assert manager.size() == 1
        assert manager.get("session-123") is env_file
        assert env_file.host_path == "/host/env/session-session-123.env"
        assert _mode(env_file.container_path) == 0o600

    def test_create_replaces_existing_file(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)
        first = manager.create("s", {"A": "old"})

        second = manager.create("s", {"A": "new"})

        assert manager.size() == 1
        assert manager.get("s") is second
        assert first.removed is True
        assert Path(second.container_path).read_text() == "A=new\n"

    def test_cleanup_removes_and_untracks(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)
        env_file = manager.create("s", {"A": "1"})

        manager.cleanup("s")

        assert manager.get("s") is None
        assert manager.size() == 0
        assert not Path(env_file.container_path).exists()

    def test_cleanup_unknown_session_is_noop(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)

        manager.cleanup("never-created")

        assert manager.size() == 0

    def test_cleanup_all(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)
        files = [manager.create(f"s-{i}", {"A": str(i)}) for i in range(3)]

        manager.cleanup_all()

        assert manager.size() == 0
        assert all(not Path(f.container_path).exists() for f in files)

    def test_cleanup_tolerates_file_removed_externally(self, tmp_path: Path) -> None:
        manager = self._manager(tmp_path)
        env_file = manager.create("s", {"A": "1"})
        os.unlink(env_file.container_path)

        manager.cleanup("s")

        assert manager.size() == 0
