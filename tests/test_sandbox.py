import os

import pytest

from ftz.file.sandbox import SandboxDir


@pytest.fixture
def sandbox(share_dir):
    with SandboxDir(share_dir) as directory:
        yield directory


def test_open_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        SandboxDir(tmp_path / "missing")


def test_open_root_that_is_a_file(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("x")
    with pytest.raises(NotADirectoryError):
        SandboxDir(path)


def test_open_read(sandbox, share_dir):
    (share_dir / "docs").mkdir()
    (share_dir / "docs" / "readme.txt").write_bytes(b"hello")
    with sandbox.open_read("docs/readme.txt") as f:
        assert f.read() == b"hello"


def test_open_read_missing(sandbox):
    with pytest.raises(FileNotFoundError):
        sandbox.open_read("nope.txt")


def test_open_read_directory(sandbox, share_dir):
    (share_dir / "docs").mkdir()
    with pytest.raises(IsADirectoryError):
        sandbox.open_read("docs")


def test_open_read_root(sandbox):
    with pytest.raises(IsADirectoryError):
        sandbox.open_read("")


def test_dotdot_rejected(sandbox):
    with pytest.raises(PermissionError):
        sandbox.open_read("../secret.txt")


def test_symlinked_file_refused(sandbox, share_dir, tmp_path):
    secret = tmp_path / "secret.txt"
    secret.write_bytes(b"secret")
    os.symlink(secret, share_dir / "link.txt")
    with pytest.raises(OSError):
        sandbox.open_read("link.txt")


def test_symlinked_directory_refused(sandbox, share_dir, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_bytes(b"secret")
    os.symlink(outside, share_dir / "escape")
    with pytest.raises(OSError):
        sandbox.open_read("escape/secret.txt")


def test_create_file_through_symlink_refused(sandbox, share_dir, tmp_path):
    target = tmp_path / "victim.txt"
    target.write_bytes(b"original")
    os.symlink(target, share_dir / "link.txt")
    with pytest.raises(OSError):
        sandbox.create_file("link.txt")
    assert target.read_bytes() == b"original"


def test_make_parents(sandbox, share_dir):
    sandbox.make_parents("a/b/c/file.txt")
    assert (share_dir / "a" / "b" / "c").is_dir()
    assert not (share_dir / "a" / "b" / "c" / "file.txt").exists()

    # Existing parents are fine
    sandbox.make_parents("a/b/other.txt")


def test_create_file_truncates(sandbox, share_dir):
    (share_dir / "data.bin").write_bytes(b"old contents")
    with sandbox.create_file("data.bin") as f:
        f.write(b"new")
    assert (share_dir / "data.bin").read_bytes() == b"new"


def test_create_file_needs_parents(sandbox):
    with pytest.raises(FileNotFoundError):
        sandbox.create_file("missing/data.bin")


def test_remove(sandbox, share_dir):
    (share_dir / "gone.txt").write_bytes(b"x")
    sandbox.remove("gone.txt")
    assert not (share_dir / "gone.txt").exists()


def test_close_is_idempotent(share_dir):
    directory = SandboxDir(share_dir)
    directory.close()
    directory.close()


def test_open_read_fifo_refused(sandbox, share_dir):
    os.mkfifo(share_dir / "pipe")
    with pytest.raises(PermissionError):
        sandbox.open_read("pipe")
