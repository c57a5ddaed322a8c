"""CLI entry point for teegen.cli module.

Enables execution via: python -m teegen.cli {redrive,cleanup} [OPTIONS]
"""

import sys

from teegen.cli import cleanup_artifacts, redrive_dlq

COMMANDS = {
    "redrive": redrive_dlq.main,
    "cleanup": cleanup_artifacts.main,
}


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in COMMANDS:
        print(f"Usage: python -m teegen.cli {{{','.join(COMMANDS)}}} [OPTIONS]", file=sys.stderr)
        sys.exit(2)
    COMMANDS[argv[0]](argv[1:])


if __name__ == "__main__":
    main()
