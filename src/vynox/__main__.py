"""Entry point for ``python -m vynox``."""

from vynox.cli import main

if __name__ == "__main__":
    main()
