"""Allow ``python -m guidelint``."""

from guidelint.cli.app import app

app(prog_name="guidelint")
