"""Reading agent session transcripts.

The agent writes one JSON object per line to
``.claude/projects/-workspace-data/<session id>.jsonl`` on the conversation's
volume. Entries are typed ``user``, ``assistant`` or ``system``; everything
else in the file (summaries, snapshots, queue operations) is ignored.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

SESSION_PROJECT_DIR = ".claude/projects/-workspace-data"

ENTRY_TYPES = ("user", "assistant", "system")

# Texts the agent emits on an internal stop sequence; never shown to users.
ARTIFACT_TEXTS = frozenset({"No response requested."})

SYSTEM_CONTEXT_MARKER = "[SYSTEM CONTEXT"
_DEBATE_ARGUMENT_RE = re.compile(r"상대방 주장: ([\s\S]*)$")
_VERDICT_ARGUMENT_RE = re.compile(r"사용자의 최종 변론: ([\s\S]*)$")


def session_file_path(session_id: str) -> str:
    return f"{SESSION_PROJECT_DIR}/{session_id}.jsonl"


def _content_blocks(entry: dict[str, Any]) -> list:
    message = entry.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    return content if isinstance(content, list) else []


def _is_internal_artifact(entry: dict[str, Any]) -> bool:
    content = _content_blocks(entry)
    if not content:
        return True
    if any(isinstance(b, dict) and b.get("type") == "tool_use" for b in content):
        return False
    text_blocks = [b for b in content if isinstance(b, dict) and b.get("type") == "text"]
    if len(text_blocks) != 1:
        return False
    return str(text_blocks[0].get("text") or "").strip() in ARTIFACT_TEXTS


def strip_debate_context(text: str) -> str:
    """Return only the human's argument from a prompt wrapped in debate framing."""
    match = _DEBATE_ARGUMENT_RE.search(text) or _VERDICT_ARGUMENT_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _clean_user_entry(entry: dict[str, Any]) -> None:
    message = entry.get("message")
    if not isinstance(message, dict):
        return
    content = message.get("content")
    if isinstance(content, str):
        if SYSTEM_CONTEXT_MARKER in content:
            message["content"] = strip_debate_context(content)
    elif isinstance(content, list):
        for block in content:
            if (
                isinstance(block, dict)
                and block.get("type") == "text"
                and isinstance(block.get("text"), str)
                and SYSTEM_CONTEXT_MARKER in block["text"]
            ):
                block["text"] = strip_debate_context(block["text"])


def parse_session_jsonl(content: str) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    skipped = 0

    for line in content.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        try:
            entry = json.loads(trimmed)
        except ValueError:
            skipped += 1
            continue
        if not isinstance(entry, dict) or entry.get("type") not in ENTRY_TYPES:
            continue

        if entry["type"] == "assistant" and _is_internal_artifact(entry):
            continue
        if entry["type"] == "user":
            _clean_user_entry(entry)
        entries.append(entry)

    if skipped:
        logger.debug("skipped %s malformed transcript lines", skipped)
    return entries


def extract_last_assistant_text(entries: list[dict[str, Any]]) -> str:
    for entry in reversed(entries):
        if entry.get("type") != "assistant":
            continue
        texts = [
            b["text"]
            for b in _content_blocks(entry)
            if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str) and b["text"]
        ]
        if texts:
            return "\n".join(texts)
    return ""
