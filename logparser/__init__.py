"""Tail log files and parse each new line into measurements with grok patterns."""

__version__ = "0.1.0"
