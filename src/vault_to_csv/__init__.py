"""Flatten a Markdown vault into a CSV table of folder, file and block rows."""

__version__ = "0.3.0"
