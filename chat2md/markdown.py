"""Render conversation messages as appendable Markdown."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable

from chat2md.models import ConversationMessage

_ROLE_LABELS = {
    "user": "**User**:",
    "assistant": "**Claude**:",
}
_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("-", name)


class MarkdownConverter:
    def convert_for_append(self, messages: Iterable[ConversationMessage]) -> str:
        """Render messages as ``label\\nbody\\n\\n\\n`` blocks.

        Each block ends with two empty lines, so the next append to the same
        file always starts a fresh paragraph.
        """
        lines: list[str] = []
        for message in messages:
            lines.append(_ROLE_LABELS[message.role])
            # A table must be preceded by a blank line to render
            if message.content.startswith("|"):
                lines.append("")
            lines.append(message.content)
            lines.append("")
            lines.append("")
        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    def generate_filename(self, project_name: str, day: date | datetime) -> str:
        return f"{day.strftime('%Y-%m-%d')}-{sanitize_filename(project_name)}.md"
