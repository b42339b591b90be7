"""Allows ``python -m petitionhub.cli``."""

from petitionhub.cli import main

if __name__ == "__main__":
    main()
