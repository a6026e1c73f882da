"""
Extension Compatibility Metrics

A tool for tracking which JupyterLab versions third-party extensions supported over time.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main"]
