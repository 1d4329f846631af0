"""Allow running as ``python -m kubersync``."""

from .cli import main

if __name__ == "__main__":
    main()
