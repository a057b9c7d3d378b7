"""
Script: release_tools/list_images.py
What: Prints every image reference a release would build for a tag.
Doing: Expands the image table with the configured registry and the given tag.
Why: Lets operators check names before a long build, without running docker.
Goal: Show the exact build order and references `publish-images` will use.
"""

from __future__ import annotations

import sys
from typing import Sequence

from release_tools.common import UsageError
from release_tools.images import planned_refs, resolve_registry


USAGE = "Usage: python3 -m release_tools.cli list-images 20230826-1"


def main(argv: Sequence[str] = ()) -> None:
    if not argv or not argv[0]:
        raise UsageError(USAGE)
    for ref in planned_refs(resolve_registry(), argv[0]):
        print(ref)


if __name__ == "__main__":
    main(sys.argv[1:])
