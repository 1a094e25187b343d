"""Entry point for ``python -m burrow``."""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
