"""
Command-line interface for sitefactory.
"""

from sitefactory.cli.app import app

__all__ = ["app"]
