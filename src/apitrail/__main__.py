"""Allow running apitrail as ``python -m apitrail``."""

from apitrail.cli import main

if __name__ == "__main__":
    main()
