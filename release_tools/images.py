"""
Script: release_tools/images.py
What: Declares the images a backend release builds and publishes.
Doing: Keeps one ordered table of (service name, repository, Dockerfile, context) entries.
Why: Adding or removing a service is a data change here, not a control-flow change.
Goal: One source of truth for image names, build inputs, and build/push order.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from release_tools.common import ReleaseToolError, optional_env


DEFAULT_REGISTRY = "ghcr.io/chalkpe"
BASE_IMAGE_TAG = "latest"


@dataclass(frozen=True)
class ImageSpec:
    name: str
    repository: str
    dockerfile: Path
    # None means "no build context": the Dockerfile is streamed on stdin.
    context: Path | None = None


BASE_IMAGE = ImageSpec(
    name="base",
    repository="stoat-backend-base",
    dockerfile=Path("Dockerfile.useCurrentArch"),
    context=Path("."),
)

# Build and push order. Every entry builds FROM the base image.
SERVICE_IMAGES: tuple[ImageSpec, ...] = (
    ImageSpec("server", "stoat-backend-server", Path("crates/delta/Dockerfile")),
    ImageSpec("bonfire", "stoat-backend-bonfire", Path("crates/bonfire/Dockerfile")),
    ImageSpec("autumn", "stoat-backend-autumn", Path("crates/services/autumn/Dockerfile")),
    ImageSpec("january", "stoat-backend-january", Path("crates/services/january/Dockerfile")),
    ImageSpec("gifbox", "stoat-backend-gifbox", Path("crates/services/gifbox/Dockerfile")),
    ImageSpec("crond", "stoat-backend-crond", Path("crates/daemons/crond/Dockerfile")),
    ImageSpec("pushd", "stoat-backend-pushd", Path("crates/daemons/pushd/Dockerfile")),
)


def resolve_registry() -> str:
    """Return the registry prefix, e.g. `ghcr.io/chalkpe`, without a trailing slash."""
    registry = optional_env("RELEASE_REGISTRY", DEFAULT_REGISTRY).strip().rstrip("/")
    if not registry:
        raise ReleaseToolError("RELEASE_REGISTRY must not be empty")
    return registry


def image_ref(registry: str, image: ImageSpec, tag: str) -> str:
    """Build `<registry>/<repository>:<tag>`."""
    return f"{registry}/{image.repository}:{tag}"


def base_image_ref(registry: str) -> str:
    # The base image is never versioned; services always build on `latest`.
    return image_ref(registry, BASE_IMAGE, BASE_IMAGE_TAG)


def planned_refs(registry: str, tag: str) -> list[str]:
    """All image refs a release builds, in build order (base first)."""
    refs = [base_image_ref(registry)]
    refs.extend(image_ref(registry, image, tag) for image in SERVICE_IMAGES)
    return refs
