from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Mapping, Sequence

from release_tools.common import ReleaseToolError


Command = Callable[[Sequence[str]], object]


def command_map() -> dict[str, Command]:
    """
    Map CLI command names to Python entry functions.

    Each value is a `main(argv)` function from one release helper module.
    """
    from release_tools.list_images import main as list_images
    from release_tools.publish_images import main as publish_images

    return {
        "publish-images": publish_images,
        "list-images": list_images,
    }


def build_parser(commands: Mapping[str, Command]) -> argparse.ArgumentParser:
    """Build argument parser with one command choice and pass-through arguments."""
    parser = argparse.ArgumentParser(
        prog="python3 -m release_tools.cli",
        description="Run one release helper command.",
    )
    parser.add_argument("command", choices=sorted(commands.keys()))
    parser.add_argument("args", nargs=argparse.REMAINDER)
    return parser


def run_command(command: str, args: Sequence[str], commands: Mapping[str, Command]) -> None:
    """
    Run one registered command.

    `commands` is passed in to keep this function easy to test.
    """
    commands[command](args)


def main(argv: list[str] | None = None) -> None:
    # Build command registry once so parser and dispatcher use the same keys.
    commands = command_map()
    parser = build_parser(commands)
    args = parser.parse_args(argv)

    try:
        run_command(args.command, args.args, commands)
    except ReleaseToolError as exc:
        # Keep failures short and readable; the tool's own output is already above.
        print(str(exc), file=sys.stderr)
        raise SystemExit(exc.exit_code) from exc


if __name__ == "__main__":
    main()
