"""Incremental parser for Claude Code JSONL transcripts.

Only the records appended since the last sync are decoded. The watermark is
the number of ``\\n`` characters in the file (what ``wc -l`` reports), so a
trailing record without a newline is picked up on the pass after it is
terminated.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Union

from chat2md.date_utils import parse_iso_timestamp
from chat2md.models import ConversationMessage, ParseResult

logger = logging.getLogger("chat2md.parser")

_MESSAGE_TYPES = {"user", "assistant"}

# Harness-injected text that never belongs in the exported conversation.
SYSTEM_MESSAGE_MARKERS = (
    "<local-command",
    "<command-name>",
    "<system-reminder>",
    "<task-notification>",
    "<bash-stdout>",
    "<bash-stderr>",
    "<local-command-caveat>",
)

# Inline directives are dropped together with their bodies; the rest of the text survives.
INLINE_DIRECTIVE_TAGS = ("skill", "ide_opened_file", "ide_selection")
_INLINE_DIRECTIVE_PATTERN = re.compile(
    r"<(?P<tag>" + "|".join(INLINE_DIRECTIVE_TAGS) + r")(?:\s[^>]*)?>[\s\S]*?</(?P=tag)>",
    re.IGNORECASE,
)

_NO_RESPONSE_PREFIX = "no response requested"


# ── message.content: string or list of typed blocks ─────────────────

@dataclass(frozen=True)
class TextContent:
    text: str

    def text_segments(self) -> list[str]:
        return [self.text]


@dataclass(frozen=True)
class BlockContent:
    blocks: tuple[dict[str, Any], ...]

    def text_segments(self) -> list[str]:
        segments: list[str] = []
        for block in self.blocks:
            if block.get("type") != "text":
                continue
            text = block.get("text")
            if isinstance(text, str):
                segments.append(text)
        return segments


MessageContent = Union[TextContent, BlockContent]


def decode_content(raw: Any) -> MessageContent | None:
    if isinstance(raw, str):
        return TextContent(raw)
    if isinstance(raw, list):
        return BlockContent(tuple(item for item in raw if isinstance(item, dict)))
    return None


# ── per-record decoding ─────────────────────────────────────────────

@dataclass
class RecordOutcome:
    messages: list[ConversationMessage] = field(default_factory=list)
    ignored_reason: str = ""


def strip_inline_directives(text: str) -> str:
    return _INLINE_DIRECTIVE_PATTERN.sub("", text)


def is_system_message(text: str) -> bool:
    return any(marker in text for marker in SYSTEM_MESSAGE_MARKERS)


def clean_segment(text: str, role: str) -> str | None:
    """Return the exportable form of one text segment, or None to drop it."""
    cleaned = strip_inline_directives(text).strip()
    if not cleaned:
        return None
    if is_system_message(cleaned):
        return None
    if role == "assistant" and cleaned.lower().startswith(_NO_RESPONSE_PREFIX):
        return None
    return cleaned


def decode_record(line: str, since: datetime | None = None) -> RecordOutcome:
    if not line.strip():
        return RecordOutcome(ignored_reason="blank")
    try:
        entry = json.loads(line)
    except json.JSONDecodeError:
        return RecordOutcome(ignored_reason="malformed")
    if not isinstance(entry, dict):
        return RecordOutcome(ignored_reason="malformed")

    role = entry.get("type")
    if role not in _MESSAGE_TYPES:
        return RecordOutcome(ignored_reason="not_a_message")

    timestamp = parse_iso_timestamp(entry.get("timestamp"))
    if since is not None and timestamp is not None and timestamp < since:
        return RecordOutcome(ignored_reason="before_since")

    message = entry.get("message")
    content = decode_content(message.get("content")) if isinstance(message, dict) else None
    if content is None:
        return RecordOutcome(ignored_reason="no_content")

    messages: list[ConversationMessage] = []
    for segment in content.text_segments():
        cleaned = clean_segment(segment, role)
        if cleaned is None:
            continue
        messages.append(ConversationMessage(role=role, content=cleaned, timestamp=timestamp))

    if not messages:
        return RecordOutcome(ignored_reason="filtered")
    return RecordOutcome(messages=messages)


def parse_new_lines(path: Path | str, after_line: int, since: datetime | None = None) -> ParseResult:
    """Decode the records appended after ``after_line``.

    Never raises: an unreadable file yields an empty result whose watermark is
    ``after_line`` so the caller's offset stays where it was.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read transcript {path}: {e}")
        return ParseResult(messages=[], totalLines=after_line)

    total_lines = content.count("\n")
    if total_lines <= after_line:
        return ParseResult(messages=[], totalLines=total_lines)

    records = content.split("\n")[after_line:total_lines]
    messages: list[ConversationMessage] = []
    ignored = 0
    for record in records:
        outcome = decode_record(record, since)
        if outcome.ignored_reason:
            ignored += 1
            continue
        messages.extend(outcome.messages)

    logger.debug(
        "Parsed %s: records %d-%d, %d messages, %d ignored",
        path, after_line, total_lines, len(messages), ignored,
    )
    return ParseResult(messages=messages, totalLines=total_lines)
