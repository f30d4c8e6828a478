"""Incrementally mirror Claude Code transcripts into Markdown."""

__version__ = "0.1.0"
