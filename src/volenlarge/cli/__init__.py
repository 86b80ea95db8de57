"""
volenlarge Command Line Interface.
"""

from volenlarge.cli.main import cli, main

__all__ = ["cli", "main"]
