"""
Script: release_tools/pipeline.py
What: Runs the ordered build-then-publish release pipeline.
Doing: Builds the base image, builds every service image, then pushes the service images.
Why: Nothing may be pushed until every image built, and the first failure must stop the run.
Goal: One fail-fast sequence that reports exactly which step and image failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from release_tools.build_profile import debug_profile, worktree_lock
from release_tools.common import ReleaseToolError, docker_build, docker_push
from release_tools.images import BASE_IMAGE, SERVICE_IMAGES, ImageSpec, base_image_ref, image_ref


BuildFn = Callable[[ImageSpec, str], None]
PushFn = Callable[[str], None]


@dataclass(frozen=True)
class ReleaseOptions:
    tag: str
    debug_build: bool
    registry: str
    worktree: Path
    config_file: Path
    keep_profile_on_failure: bool = False


@dataclass
class ReleaseResult:
    built: list[str] = field(default_factory=list)
    pushed: list[str] = field(default_factory=list)


class StepFailed(ReleaseToolError):
    """A build or push step failed; later steps did not run."""

    def __init__(
        self,
        *,
        stage: str,
        image: ImageSpec,
        ref: str,
        pushed: list[str],
        cause: ReleaseToolError,
    ) -> None:
        message = f"{stage} failed for {image.name} ({ref})\n{cause}"
        if pushed:
            # Registry side is not rolled back; say what is already live.
            message += "\nAlready published: " + ", ".join(pushed)
        super().__init__(message)
        self.stage = stage
        self.image = image
        self.ref = ref
        self.pushed = list(pushed)
        self.exit_code = cause.exit_code


def default_builder(worktree: Path) -> BuildFn:
    """Return a build step that runs `docker build` inside `worktree`."""

    def _build(image: ImageSpec, ref: str) -> None:
        docker_build(ref, image.dockerfile, context=image.context, cwd=worktree)

    return _build


def build_all(options: ReleaseOptions, build_image: BuildFn, result: ReleaseResult) -> None:
    # Base first: service Dockerfiles start FROM it in the local image store.
    steps = [(BASE_IMAGE, base_image_ref(options.registry))]
    steps.extend((image, image_ref(options.registry, image, options.tag)) for image in SERVICE_IMAGES)

    for image, ref in steps:
        print(f"Building {image.name}: {ref}")
        try:
            build_image(image, ref)
        except ReleaseToolError as exc:
            raise StepFailed(stage="build", image=image, ref=ref, pushed=[], cause=exc) from exc
        result.built.append(ref)
        print(f"Built {ref}")


def push_all(options: ReleaseOptions, push_image: PushFn, result: ReleaseResult) -> None:
    # The base image is a local build input only and is never published.
    for image in SERVICE_IMAGES:
        ref = image_ref(options.registry, image, options.tag)
        print(f"Pushing {image.name}: {ref}")
        try:
            push_image(ref)
        except ReleaseToolError as exc:
            raise StepFailed(
                stage="push", image=image, ref=ref, pushed=result.pushed, cause=exc
            ) from exc
        result.pushed.append(ref)
        print(f"Pushed {ref}")


def run_release(
    options: ReleaseOptions,
    *,
    build_image: BuildFn | None = None,
    push_image: PushFn | None = None,
) -> ReleaseResult:
    """
    Build every image, then publish the service images.

    Order:
    1. take the worktree lock
    2. optionally enable the debug profile
    3. build base + services (stop on first failure)
    4. restore the config file
    5. push services in build order (stop on first failure)
    """
    build_image = build_image or default_builder(options.worktree)
    push_image = push_image or docker_push
    result = ReleaseResult()

    with worktree_lock(options.worktree):
        with debug_profile(
            options.config_file,
            enabled=options.debug_build,
            keep_on_failure=options.keep_profile_on_failure,
        ):
            build_all(options, build_image, result)

        push_all(options, push_image, result)

    return result
