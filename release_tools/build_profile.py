"""
Script: release_tools/build_profile.py
What: Temporarily switches the shared Cargo release profile to keep debug symbols.
Doing: Appends `[profile.release] debug = true` before builds and restores the original bytes afterwards.
Why: Debug builds reuse the normal Dockerfiles, which all read the same `Cargo.toml`.
Goal: Leave the working copy exactly as it was found, and never let two runs share it.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from release_tools.common import ReleaseToolError, atomic_write_bytes


DEBUG_PROFILE_DIRECTIVE = b"[profile.release]\ndebug = true\n"
LOCK_FILE_PREFIX = "publish-images-"


def with_debug_directive(original: bytes) -> bytes:
    """Return `original` with the debug directive appended as its own section."""
    if original and not original.endswith(b"\n"):
        # Without this the header would be glued onto the last line.
        original += b"\n"
    return original + DEBUG_PROFILE_DIRECTIVE


@contextmanager
def debug_profile(
    config_file: Path,
    *,
    enabled: bool,
    keep_on_failure: bool = False,
) -> Iterator[None]:
    """
    Enable debug symbols in `config_file` for the duration of the block.

    When `enabled` is false the file is not read or written at all.
    Restoration runs on every exit path. The only exception is
    `keep_on_failure=True` with a release error raised inside the block: the
    directive then stays in place so the failed debug build is visible.
    """
    if not enabled:
        yield
        return

    if not config_file.is_file():
        raise ReleaseToolError(f"Expected build config file at {config_file}")

    original = config_file.read_bytes()
    atomic_write_bytes(config_file, with_debug_directive(original))
    print(f"Enabled debug symbols in {config_file}")

    try:
        yield
    except ReleaseToolError:
        if keep_on_failure:
            print(f"Leaving debug directive in {config_file} after failed build")
            raise
        _restore(config_file, original)
        raise
    except BaseException:
        _restore(config_file, original)
        raise
    _restore(config_file, original)


def _restore(config_file: Path, original: bytes) -> None:
    atomic_write_bytes(config_file, original)
    print(f"Restored {config_file}")


def lock_path_for(worktree: Path) -> Path:
    """
    Return the lock file path for one worktree.

    The lock lives in the temp dir, outside the base image build context,
    and is keyed on the resolved worktree path so aliases share one lock.
    """
    key = hashlib.sha256(str(worktree.resolve()).encode("utf-8")).hexdigest()[:16]
    return Path(tempfile.gettempdir()) / f"{LOCK_FILE_PREFIX}{key}.lock"


@contextmanager
def worktree_lock(worktree: Path) -> Iterator[Path]:
    """
    Hold an exclusive per-worktree lock file while a release runs.

    A leftover lock from a crashed run must be removed by hand; we do not
    guess whether the other process is still alive.
    """
    if not worktree.is_dir():
        raise ReleaseToolError(f"Release worktree not found: {worktree}")

    lock_path = lock_path_for(worktree)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as exc:
        raise ReleaseToolError(
            f"Another release run holds {lock_path} for {worktree}; remove it if no run is active"
        ) from exc
    except OSError as exc:
        raise ReleaseToolError(f"Cannot create release lock {lock_path}: {exc}") from exc

    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(f"{os.getpid()}\n")

    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)
