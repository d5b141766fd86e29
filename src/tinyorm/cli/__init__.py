"""
CLI layer for tinyorm.

A Typer application whose commands open a :class:`~tinyorm.database.Database`
and delegate to the migration runner and export helpers. This package
handles only terminal transport: argument parsing, coloured output and
table formatting.

Entry point::

    tinyorm --help
"""

from tinyorm.cli.app import app

__all__ = ["app"]
