"""Local runner for the probe service with src/ layout.

Usage: uv run python run_app.py
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    # Ensure src/ is on sys.path so `import frameprobe` resolves
    root = Path(__file__).resolve().parent
    src = root / "src"
    if src.exists():
        sys.path.insert(0, str(src))
    from frameprobe.cli import main as cli_main  # type: ignore

    cli_main(["--log-file", "logs/app.log", "serve"])


if __name__ == "__main__":
    main()
