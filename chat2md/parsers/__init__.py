"""Transcript discovery and parsing."""

from chat2md.parsers.discovery import find_session_files
from chat2md.parsers.transcripts import parse_new_lines

__all__ = [
    "find_session_files",
    "parse_new_lines",
]
