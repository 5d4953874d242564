"""Allow ``python -m rsheet``."""

from rsheet.cli import main

main()
