"""
Script: tests/test_pipeline.py
What: Tests the release pipeline order and failure handling.
Doing: Replaces docker build/push with recording fakes and runs full releases in a temp worktree.
Why: Pushing before every build succeeds, or reordering builds, would publish a broken release.
Goal: Keep build order, push gating, and config restoration guaranteed.
"""

from __future__ import annotations

import contextlib
import io
import tempfile
import unittest
from pathlib import Path

from release_tools.build_profile import DEBUG_PROFILE_DIRECTIVE, lock_path_for
from release_tools.common import CommandError, ReleaseToolError
from release_tools.images import ImageSpec
from release_tools.pipeline import ReleaseOptions, StepFailed, run_release


REGISTRY = "ghcr.io/chalkpe"
ORIGINAL = b'[workspace]\nresolver = "2"\n'
SERVICES = ["server", "bonfire", "autumn", "january", "gifbox", "crond", "pushd"]


class FakeDocker:
    """Records calls and fails on request, like `docker` exiting non-zero."""

    def __init__(self, config_file: Path, *, fail_build: str = "", fail_push: str = "") -> None:
        self.config_file = config_file
        self.fail_build = fail_build
        self.fail_push = fail_push
        self.builds: list[str] = []
        self.pushes: list[str] = []
        self.debug_seen: list[bool] = []
        self.debug_seen_at_push: list[bool] = []
        self.context_listing: list[list[str]] = []

    def build(self, image: ImageSpec, ref: str) -> None:
        self.builds.append(image.name)
        self.debug_seen.append(DEBUG_PROFILE_DIRECTIVE in self.config_file.read_bytes())
        self.context_listing.append(sorted(p.name for p in self.config_file.parent.iterdir()))
        if image.name == self.fail_build:
            raise CommandError(f"Command failed: docker build -t {ref}", returncode=2)

    def push(self, ref: str) -> None:
        self.pushes.append(ref)
        self.debug_seen_at_push.append(DEBUG_PROFILE_DIRECTIVE in self.config_file.read_bytes())
        if self.fail_push and f"-{self.fail_push}:" in ref:
            raise CommandError(f"Command failed: docker push {ref}", returncode=1)


class RunReleaseTests(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = self.enterContext(tempfile.TemporaryDirectory())
        self.worktree = Path(temp_dir)
        self.config = self.worktree / "Cargo.toml"
        self.config.write_bytes(ORIGINAL)
        self.stdout = self.enterContext(contextlib.redirect_stdout(io.StringIO()))

    def options(self, tag: str, debug_build: bool, *, keep: bool = False) -> ReleaseOptions:
        return ReleaseOptions(
            tag=tag,
            debug_build=debug_build,
            registry=REGISTRY,
            worktree=self.worktree,
            config_file=self.config,
            keep_profile_on_failure=keep,
        )

    def run_with(self, docker: FakeDocker, options: ReleaseOptions):
        return run_release(options, build_image=docker.build, push_image=docker.push)

    def test_release_build_builds_eight_and_pushes_seven(self) -> None:
        docker = FakeDocker(self.config)
        result = self.run_with(docker, self.options("20230826-1", False))

        self.assertEqual(docker.builds, ["base", *SERVICES])
        self.assertEqual(
            docker.pushes,
            [f"{REGISTRY}/stoat-backend-{name}:20230826-1" for name in SERVICES],
        )
        self.assertEqual(result.pushed, docker.pushes)
        self.assertEqual(result.built[0], f"{REGISTRY}/stoat-backend-base:latest")
        self.assertEqual(self.config.read_bytes(), ORIGINAL)
        self.assertEqual(docker.debug_seen, [False] * 8)
        # The lock must not show up in the base image build context.
        self.assertEqual(docker.context_listing, [["Cargo.toml"]] * 8)

    def test_debug_build_sees_directive_and_restores(self) -> None:
        docker = FakeDocker(self.config)
        self.run_with(docker, self.options("v2", True))

        # Every build reads the directive; every push sees the restored file.
        self.assertEqual(docker.debug_seen, [True] * 8)
        self.assertEqual(docker.debug_seen_at_push, [False] * 7)
        self.assertEqual(self.config.read_bytes(), ORIGINAL)
        self.assertEqual(len(docker.pushes), 7)

    def test_base_failure_stops_before_services(self) -> None:
        docker = FakeDocker(self.config, fail_build="base")
        with self.assertRaises(StepFailed) as ctx:
            self.run_with(docker, self.options("v2", True))

        self.assertEqual(docker.builds, ["base"])
        self.assertEqual(docker.pushes, [])
        self.assertEqual(ctx.exception.stage, "build")
        self.assertEqual(ctx.exception.image.name, "base")
        self.assertEqual(ctx.exception.exit_code, 2)
        self.assertEqual(self.config.read_bytes(), ORIGINAL)

    def test_base_failure_can_keep_directive(self) -> None:
        docker = FakeDocker(self.config, fail_build="base")
        with self.assertRaises(StepFailed):
            self.run_with(docker, self.options("v2", True, keep=True))

        self.assertEqual(docker.builds, ["base"])
        self.assertEqual(docker.pushes, [])
        self.assertEqual(self.config.read_bytes(), ORIGINAL + DEBUG_PROFILE_DIRECTIVE)

    def test_service_failure_skips_later_builds_and_all_pushes(self) -> None:
        docker = FakeDocker(self.config, fail_build="january")
        with self.assertRaises(StepFailed) as ctx:
            self.run_with(docker, self.options("v3", False))

        self.assertEqual(docker.builds, ["base", "server", "bonfire", "autumn", "january"])
        self.assertEqual(docker.pushes, [])
        self.assertEqual(ctx.exception.ref, f"{REGISTRY}/stoat-backend-january:v3")

    def test_push_failure_reports_already_published(self) -> None:
        docker = FakeDocker(self.config, fail_push="january")
        with self.assertRaises(StepFailed) as ctx:
            self.run_with(docker, self.options("v4", False))

        self.assertEqual(len(docker.builds), 8)
        self.assertEqual(len(docker.pushes), 4)
        self.assertEqual(ctx.exception.stage, "push")
        self.assertEqual(
            ctx.exception.pushed,
            [f"{REGISTRY}/stoat-backend-{name}:v4" for name in ["server", "bonfire", "autumn"]],
        )
        self.assertIn("Already published", str(ctx.exception))

    def test_lock_removed_after_failure(self) -> None:
        docker = FakeDocker(self.config, fail_build="server")
        with self.assertRaises(StepFailed):
            self.run_with(docker, self.options("v5", True))
        self.assertFalse(lock_path_for(self.worktree).exists())

    def test_held_lock_blocks_run(self) -> None:
        held = lock_path_for(self.worktree)
        held.write_text("123\n", encoding="utf-8")
        self.addCleanup(held.unlink, missing_ok=True)
        docker = FakeDocker(self.config)
        with self.assertRaises(ReleaseToolError):
            self.run_with(docker, self.options("v6", True))
        self.assertEqual(docker.builds, [])
        self.assertEqual(self.config.read_bytes(), ORIGINAL)


if __name__ == "__main__":
    unittest.main()
