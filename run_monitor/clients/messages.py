"""Thread message rendering — text parts, URL citations, transcripts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

ASSISTANT_ROLES = {"assistant", "agent"}


def _render_citations(text: str, annotations: list[dict[str, Any]]) -> str:
    for annotation in annotations:
        if annotation.get("type") != "url_citation":
            continue
        marker = annotation.get("text")
        citation = annotation.get("url_citation", {})
        if not marker or not citation.get("url"):
            continue
        title = citation.get("title") or citation["url"]
        text = text.replace(marker, f" [see {title}]({citation['url']})")
    return text


def render_text(message: dict[str, Any]) -> str:
    """Concatenate a message's content parts into display text.

    Assistant messages get their URL-citation markers replaced with
    markdown links; image parts render as a placeholder.
    """
    is_assistant = message.get("role") in ASSISTANT_ROLES
    parts: list[str] = []
    for item in message.get("content", []):
        kind = item.get("type")
        if kind == "text":
            text_block = item.get("text", {})
            value = text_block.get("value", "")
            if is_assistant:
                value = _render_citations(value, text_block.get("annotations", []))
            parts.append(value)
        elif kind == "image_file":
            file_id = item.get("image_file", {}).get("file_id", "")
            parts.append(f"<image from ID: {file_id}>")
    return "".join(parts)


def last_assistant_text(messages: list[dict[str, Any]]) -> str:
    """Text of the most recent assistant message, or "" if there is none."""
    latest: dict[str, Any] | None = None
    for msg in messages:
        if msg.get("role") not in ASSISTANT_ROLES:
            continue
        if latest is None or msg.get("created_at", 0) >= latest.get("created_at", 0):
            latest = msg
    return render_text(latest) if latest else ""


def format_transcript(messages: list[dict[str, Any]]) -> str:
    lines = []
    for msg in messages:
        created = datetime.fromtimestamp(msg.get("created_at", 0), tz=timezone.utc)
        lines.append(
            f"{created:%Y-%m-%d %H:%M:%S} - {msg.get('role', ''):>10}: {render_text(msg)}"
        )
    return "\n".join(lines)
