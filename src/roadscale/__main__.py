"""Allow ``python -m roadscale ...`` as an entry point for the CLI."""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
