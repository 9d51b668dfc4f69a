import json

from toron.services.transcript import (
    extract_last_assistant_text,
    parse_session_jsonl,
    session_file_path,
    strip_debate_context,
)


def _jsonl(*entries) -> str:
    return "\n".join(json.dumps(e, ensure_ascii=False) if not isinstance(e, str) else e for e in entries)


def _assistant(*blocks) -> dict:
    return {"type": "assistant", "message": {"role": "assistant", "content": list(blocks)}}


def test_session_file_path_points_into_project_dir() -> None:
    assert session_file_path("abc") == ".claude/projects/-workspace-data/abc.jsonl"


def test_parse_keeps_only_conversation_entry_types() -> None:
    content = _jsonl(
        {"type": "summary", "summary": "x"},
        {"type": "user", "message": {"role": "user", "content": "hello"}},
        _assistant({"type": "text", "text": "hi"}),
        {"type": "system", "subtype": "init"},
        {"type": "queue-operation"},
    )
    entries = parse_session_jsonl(content)
    assert [e["type"] for e in entries] == ["user", "assistant", "system"]


def test_parse_skips_malformed_and_blank_lines() -> None:
    content = _jsonl(
        "{not json",
        "",
        "   ",
        _assistant({"type": "text", "text": "ok"}),
    )
    entries = parse_session_jsonl(content)
    assert len(entries) == 1
    assert entries[0]["message"]["content"][0]["text"] == "ok"


def test_parse_drops_stop_sequence_artifacts() -> None:
    content = _jsonl(
        _assistant({"type": "text", "text": "No response requested."}),
        _assistant({"type": "text", "text": "real answer"}),
        {"type": "assistant", "message": {"role": "assistant", "content": []}},
    )
    entries = parse_session_jsonl(content)
    assert len(entries) == 1
    assert entries[0]["message"]["content"][0]["text"] == "real answer"


def test_artifact_text_next_to_tool_use_is_kept() -> None:
    content = _jsonl(
        _assistant(
            {"type": "text", "text": "No response requested."},
            {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "python x.py"}},
        )
    )
    assert len(parse_session_jsonl(content)) == 1


def test_user_prompt_with_debate_framing_is_reduced_to_argument() -> None:
    prompt = "[SYSTEM CONTEXT: 토론 규칙...]\n여러 줄의 안내\n상대방 주장: 정규화가 정답입니다."
    content = _jsonl({"type": "user", "message": {"role": "user", "content": prompt}})
    entries = parse_session_jsonl(content)
    assert entries[0]["message"]["content"] == "정규화가 정답입니다."


def test_user_text_blocks_are_cleaned_too() -> None:
    prompt = "[SYSTEM CONTEXT: 판결]\n사용자의 최종 변론: 제 주장이 맞습니다"
    content = _jsonl({
        "type": "user",
        "message": {"role": "user", "content": [{"type": "text", "text": prompt}]},
    })
    entries = parse_session_jsonl(content)
    assert entries[0]["message"]["content"][0]["text"] == "제 주장이 맞습니다"


def test_user_prompt_without_marker_is_untouched() -> None:
    content = _jsonl({"type": "user", "message": {"role": "user", "content": "상대방 주장: 그대로"}})
    assert parse_session_jsonl(content)[0]["message"]["content"] == "상대방 주장: 그대로"


def test_strip_debate_context_without_markers_returns_input() -> None:
    assert strip_debate_context("[SYSTEM CONTEXT] nothing else") == "[SYSTEM CONTEXT] nothing else"


def test_last_assistant_text_joins_text_blocks_of_latest_entry() -> None:
    entries = parse_session_jsonl(_jsonl(
        _assistant({"type": "text", "text": "first"}),
        _assistant(
            {"type": "text", "text": "second"},
            {"type": "tool_use", "id": "t1", "name": "WebSearch", "input": {"query": "q"}},
            {"type": "text", "text": "third"},
        ),
        {"type": "user", "message": {"role": "user", "content": "later"}},
    ))
    assert extract_last_assistant_text(entries) == "second\nthird"


def test_last_assistant_text_skips_tool_only_entries() -> None:
    entries = parse_session_jsonl(_jsonl(
        _assistant({"type": "text", "text": "answer"}),
        _assistant({"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "make"}}),
    ))
    assert extract_last_assistant_text(entries) == "answer"


def test_last_assistant_text_empty_when_no_assistant() -> None:
    assert extract_last_assistant_text([]) == ""


def test_parsing_is_repeatable() -> None:
    content = _jsonl(
        {"type": "user", "message": {"role": "user", "content": "[SYSTEM CONTEXT]\n상대방 주장: 하나"}},
        _assistant({"type": "text", "text": "둘"}),
        "garbage",
    )
    assert parse_session_jsonl(content) == parse_session_jsonl(content)


def test_last_assistant_text_ignores_non_string_text() -> None:
    entries = parse_session_jsonl(_jsonl(
        _assistant({"type": "text", "text": "earlier"}),
        _assistant({"type": "text", "text": 42}, {"type": "text", "text": None}),
    ))
    assert extract_last_assistant_text(entries) == "earlier"
