"""Execution script.

Why it exists:
- Runs the CLI with `python -m main` during development.
- Keeps a simple entry point next to the packaged `protoscope` script.
"""

from __future__ import annotations

import sys

# Windows terminals may default to cp1252; Rich output needs utf-8.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
