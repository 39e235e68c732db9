"""Command chaining, saved flows and JSON piping for the uni CLI."""

__version__ = "0.1.0"
