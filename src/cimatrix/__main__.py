"""Allow ``python -m cimatrix``."""

from cimatrix.cli.app import app

app()
