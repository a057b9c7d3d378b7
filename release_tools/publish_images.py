"""
Script: release_tools/publish_images.py
What: Builds all backend images for one release tag and pushes them to the registry.
Doing: Validates `<tag> [debugBuild]`, reads env configuration, then runs the release pipeline.
Why: Replaces the old publish shell script with a testable, fail-fast Python command.
Goal: Publish a complete, consistently tagged set of service images, or nothing new on build failure.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

from release_tools.common import UsageError, env_flag, optional_env
from release_tools.images import resolve_registry
from release_tools.pipeline import ReleaseOptions, ReleaseResult, run_release


USAGE = (
    "No arguments provided\n"
    "Usage: python3 -m release_tools.cli publish-images 20230826-1 true\n"
    "\n"
    "Last argument specifies whether we should have a debug build as opposed to release build."
)


def parse_release_args(argv: Sequence[str]) -> tuple[str, bool]:
    """
    Return `(tag, debug_build)` from positional arguments.

    Only the exact string `true` turns on a debug build. Extra arguments are ignored.
    """
    if not argv or not argv[0]:
        raise UsageError(USAGE)
    tag = argv[0]
    debug_build = len(argv) > 1 and argv[1] == "true"
    return tag, debug_build


def load_release_options(argv: Sequence[str]) -> ReleaseOptions:
    tag, debug_build = parse_release_args(argv)
    worktree = Path(optional_env("RELEASE_WORKTREE", "."))
    config_file = worktree / optional_env("BUILD_CONFIG_FILE", "Cargo.toml")
    return ReleaseOptions(
        tag=tag,
        debug_build=debug_build,
        registry=resolve_registry(),
        worktree=worktree,
        config_file=config_file,
        keep_profile_on_failure=env_flag("KEEP_DEBUG_PROFILE_ON_FAILURE"),
    )


def main(argv: Sequence[str] = ()) -> ReleaseResult:
    options = load_release_options(argv)
    kind = "debug" if options.debug_build else "release"
    print(f"Building {kind} images, will tag for {options.registry} with {options.tag}!")

    result = run_release(options)

    print(f"Published {len(result.pushed)} images with tag {options.tag}")
    return result


if __name__ == "__main__":
    main(sys.argv[1:])
