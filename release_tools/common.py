"""
Script: release_tools/common.py
What: Shared helper functions used by all `release_tools` modules.
Doing: Wraps env reads, command execution, docker build/push calls, and file writes.
Why: Avoids duplicated helper code.
Goal: Keep behavior consistent across all release commands.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence


class ReleaseToolError(RuntimeError):
    """Raised when a release helper hits a known error condition."""

    exit_code = 1


class UsageError(ReleaseToolError):
    """Raised when a command is invoked without its required arguments."""


class CommandError(ReleaseToolError):
    """Raised when an external command exits non-zero."""

    def __init__(self, message: str, *, returncode: int) -> None:
        super().__init__(message)
        # Keep the tool's own status so the CLI can exit with it.
        self.exit_code = returncode or 1


def optional_env(name: str, default: str = "") -> str:
    """Return an environment variable with a fallback default."""
    return os.environ.get(name, default)


def env_flag(name: str) -> bool:
    """True only when the variable is exactly `true` (case-insensitive)."""
    return optional_env(name, "false").strip().lower() == "true"


def run_cmd(
    args: Sequence[str],
    *,
    capture_output: bool = True,
    cwd: str | None = None,
    stdin_path: Path | None = None,
) -> str:
    """
    Run a command and return stdout, raising a readable error on failure.

    `stdin_path` feeds a file to the command's standard input, the same as
    `command < file` in a shell.
    """
    try:
        if stdin_path is None:
            result = subprocess.run(
                list(args),
                check=True,
                text=True,
                capture_output=capture_output,
                cwd=cwd,
            )
        else:
            with open(stdin_path, "rb") as handle:
                result = subprocess.run(
                    list(args),
                    check=True,
                    stdin=handle,
                    capture_output=capture_output,
                    cwd=cwd,
                )
    except subprocess.CalledProcessError as exc:
        stderr = _as_text(exc.stderr).strip()
        stdout = _as_text(exc.stdout).strip()
        details = stderr or stdout or str(exc)
        raise CommandError(
            f"Command failed: {' '.join(args)}\n{details}",
            returncode=exc.returncode,
        ) from exc
    except FileNotFoundError as exc:
        # Either the executable or the stdin file is missing.
        raise CommandError(f"Command failed: {' '.join(args)}\n{exc}", returncode=127) from exc

    if not capture_output:
        return ""
    return _as_text(result.stdout)


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def docker_build(
    image_ref: str,
    dockerfile: Path,
    *,
    context: Path | None,
    cwd: Path,
) -> None:
    """
    Build one image with `docker build`.

    With a `context` directory the Dockerfile is passed via `-f`.
    Without one, the Dockerfile is streamed on stdin (`docker build -t ref - < Dockerfile`),
    so the build gets no local context and must pull everything from images.
    """
    if context is not None:
        command = ["docker", "build", "-t", image_ref, "-f", str(dockerfile), str(context)]
        run_cmd(command, capture_output=False, cwd=str(cwd))
        return

    command = ["docker", "build", "-t", image_ref, "-"]
    run_cmd(command, capture_output=False, cwd=str(cwd), stdin_path=cwd / dockerfile)


def docker_push(image_ref: str) -> None:
    """Push one locally built image reference to its registry."""
    run_cmd(["docker", "push", image_ref], capture_output=False)


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """
    Replace `path` with `content` in one step.

    Data goes to a sibling temp file first and is then moved over the target,
    so readers never see a half-written file. A symlinked `path` stays a
    symlink; its target is rewritten.
    """
    path = path.resolve()
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb",
            dir=path.parent,
            delete=False,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
            tmp_path = Path(handle.name)
        if path.exists():
            # Temp files are created 0600; keep the original permissions.
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    finally:
        if tmp_path and tmp_path.exists():
            tmp_path.unlink()
