"""Module entrypoint for running mangadl as ``python -m mangadl``."""

from __future__ import annotations

from mangadl.cli import main


if __name__ == "__main__":
    main()
