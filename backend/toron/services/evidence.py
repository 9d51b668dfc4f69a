"""Turn agent tool usage in a transcript into evidence cards for the UI."""

import json
import re
from typing import Any, Optional
from urllib.parse import urlparse

MAX_EVIDENCE_CHARS = 3000

_LINKS_ARRAY_RE = re.compile(r'\[[\s\S]*?\{[\s\S]*?"title"[\s\S]*?"url"[\s\S]*?\}[\s\S]*?\]')
_LINK_OBJECT_RE = re.compile(r'\{"title":"([^"]+)","url":"([^"]+)"(?:,"snippet":"([^"]*)")?\}')
_SEARCH_QUERY_RE = re.compile(r'^Web search results for query: "(.+?)"', re.MULTILINE)
_LINKS_PREFIX_RE = re.compile(r"Links:\s*\[[\s\S]*?\]")
_LINKS_JSON_RE = re.compile(r'\[[\s\S]*?\{[\s\S]*?"title"[\s\S]*?\}[\s\S]*?\]')
_SIMPLE_COMMAND_RE = re.compile(r"^(ls|pwd|echo|cat|mkdir|which|sync|cd)\b")
_CHAINED_COMMAND_RE = re.compile(r"[&|;]")


def _blocks(entry: dict[str, Any]) -> list:
    message = entry.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, list) else []


def tool_result_text(result: dict[str, Any]) -> str:
    content = result.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text"
        )
    return ""


def parse_search_links(text: str) -> list[dict[str, Any]]:
    links: list[dict[str, Any]] = []

    match = _LINKS_ARRAY_RE.search(text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            for item in parsed:
                if isinstance(item, dict) and item.get("title") and item.get("url"):
                    links.append({
                        "title": str(item["title"]),
                        "url": str(item["url"]),
                        "snippet": str(item["snippet"]) if item.get("snippet") else None,
                    })

    if not links:
        for title, url, snippet in _LINK_OBJECT_RE.findall(text):
            links.append({"title": title, "url": url, "snippet": snippet or None})

    return links


def search_summary(text: str) -> str:
    query_match = _SEARCH_QUERY_RE.search(text)
    query_line = f'"{query_match.group(1)}" 검색 결과' if query_match else ""
    cleaned = _LINKS_JSON_RE.sub("", _LINKS_PREFIX_RE.sub("", text, count=1), count=1).strip()
    return cleaned or query_line


def _is_trivial_command(command: str) -> bool:
    trimmed = command.strip()
    return not _CHAINED_COMMAND_RE.search(trimmed) and bool(_SIMPLE_COMMAND_RE.match(trimmed))


def _hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or url
    except ValueError:
        return url


def _evidence_for(
    tool_use: dict[str, Any],
    result: Optional[dict[str, Any]],
    timestamp: Optional[str],
) -> Optional[dict[str, Any]]:
    name = tool_use.get("name")
    tool_input = tool_use.get("input") if isinstance(tool_use.get("input"), dict) else {}
    result_text = tool_result_text(result) if result else ""
    record: dict[str, Any] = {
        "id": tool_use.get("id"),
        "is_error": result.get("is_error") if result else None,
        "timestamp": timestamp,
    }

    if name == "WebSearch":
        query = tool_input.get("query") or ""
        if not query:
            return None
        links = parse_search_links(result_text)
        record.update(
            type="web-search",
            title=f"검색: {query}",
            content=search_summary(result_text),
            links=links or None,
            query=query,
        )
    elif name == "WebFetch":
        url = tool_input.get("url") or ""
        if not url:
            return None
        record.update(
            type="web-fetch",
            title=f"웹 참조: {_hostname(url)}",
            content=result_text[:MAX_EVIDENCE_CHARS],
            url=url,
            query=tool_input.get("prompt") or "",
        )
    elif name == "Bash":
        command = tool_input.get("command") or ""
        if not command or _is_trivial_command(command):
            return None
        record.update(
            type="bash",
            title="코드 실행",
            content=result_text[:MAX_EVIDENCE_CHARS],
            command=command,
        )
    elif name == "Write":
        file_path = tool_input.get("file_path") or ""
        if not file_path or ".claude/" in file_path:
            return None
        record.update(
            type="code-write",
            title=f"파일 작성: {file_path.rsplit('/', 1)[-1] or file_path}",
            content=(tool_input.get("content") or "")[:MAX_EVIDENCE_CHARS],
            file_path=file_path,
        )
    else:
        return None
    return record


def extract_evidence(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    results: dict[str, dict[str, Any]] = {}
    for entry in entries:
        if entry.get("type") != "user":
            continue
        for block in _blocks(entry):
            if isinstance(block, dict) and block.get("type") == "tool_result":
                results[block.get("tool_use_id")] = block

    evidence: list[dict[str, Any]] = []
    for entry in entries:
        if entry.get("type") != "assistant":
            continue
        for block in _blocks(entry):
            if not isinstance(block, dict) or block.get("type") != "tool_use":
                continue
            record = _evidence_for(block, results.get(block.get("id")), entry.get("timestamp"))
            if record is not None:
                evidence.append(record)
    return evidence
