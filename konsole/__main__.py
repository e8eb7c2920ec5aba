"""Allow ``python -m konsole``."""

from konsole.cli import main

main()
