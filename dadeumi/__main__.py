"""Module entrypoint for running Dadeumi as ``python -m dadeumi``."""

from __future__ import annotations

from dadeumi.cli import main


if __name__ == "__main__":
    main()
