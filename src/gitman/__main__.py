"""Allow ``python -m gitman``."""

from gitman.cli import app

app()
