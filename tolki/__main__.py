"""Run the terminal chat driver with ``python -m tolki``."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
