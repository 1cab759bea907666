"""
metricshare command line interface.

Commands to serve metrics and to manage access tokens.
"""

from .main import cli, main

__all__ = ["cli", "main"]
