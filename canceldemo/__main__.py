# canceldemo/__main__.py
from canceldemo.cli import cli

cli()
