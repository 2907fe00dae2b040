"""CLI package bootstrap.

Defines the root group (`cli`) in helpers and imports submodules so their
decorators register commands.
"""
from plsort.cli.helpers import cli  # root group
from plsort.cli import auth_cmds  # noqa: F401
from plsort.cli import playlist_cmds  # noqa: F401

__all__ = ["cli"]
