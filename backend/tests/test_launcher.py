import shlex
import uuid

import pytest

from toron.core.config import get_settings
from toron.core.errors import SandboxError
from toron.services.launcher import (
    AGENT_INPUT_PATH,
    SETUP_COMMAND,
    DebateContext,
    agent_input_lines,
    build_input_command,
    build_launch_command,
    callback_url,
    launch_agent,
)

from fakes import FakeSandboxProvider, agent_input, callback_token, launch_env


def test_input_lines_include_session_only_when_resuming() -> None:
    start, message = agent_input_lines("안녕")
    assert start == '{"type":"process_start"}'
    assert message == '{"type":"session_message","text":"안녕"}'

    start, _ = agent_input_lines("hi", session_id="sess-1")
    assert start == '{"type":"process_start","session_id":"sess-1"}'


def test_input_command_survives_shell_quoting() -> None:
    content = "it's \"quoted\"\nand $HOME `ls`"
    command = build_input_command(content, session_id="s")
    tokens = shlex.split(command)
    assert tokens[0] == "printf"
    assert tokens[-2:] == [">", AGENT_INPUT_PATH]
    start, message = agent_input(command)
    assert start == {"type": "process_start", "session_id": "s"}
    assert message["text"] == content


def test_launch_command_backgrounds_agent_with_env() -> None:
    command = build_launch_command({"DEBATE_TOPIC": "SQL vs NoSQL", "AGENT_ROLE": "agent-a"})
    assert command.startswith("nohup bash -c ")
    assert command.endswith(" &>/dev/null &")
    assert launch_env(command) == {"DEBATE_TOPIC": "SQL vs NoSQL", "AGENT_ROLE": "agent-a"}


def test_context_env_flags() -> None:
    env = DebateContext(debate_topic="t", turn_count=2, is_verdict_request=True).env()
    assert env["VERDICT_MODE"] == "true"
    assert env["AI_VS_AI_MODE"] == ""
    assert env["DEBATE_TURN"] == "2"
    assert env["INTERVENTION_MODE"] == ""


def test_callback_url_carries_token() -> None:
    cid = uuid.UUID("00000000-0000-0000-0000-000000000001")
    assert callback_url("https://api.example.com", cid, "tok") == (
        "https://api.example.com/v1/conversations/00000000-0000-0000-0000-000000000001/status?token=tok"
    )


def test_launch_agent_runs_setup_input_and_launch() -> None:
    provider = FakeSandboxProvider()
    settings = get_settings()
    cid = uuid.uuid4()

    sandbox_id = launch_agent(
        provider,
        settings,
        volume_id="vol-1",
        conversation_id=cid,
        content="첫 주장",
        callback_token="secret-token",
        context=DebateContext(debate_topic="주제", user_side="찬성", agent_side="반대", turn_count=1),
    )

    assert provider.sandboxes[0]["volume_id"] == "vol-1"
    assert provider.sandboxes[0]["mount_path"] == "/workspace/data"
    commands = provider.commands[sandbox_id]
    assert commands[0] == SETUP_COMMAND
    assert len(commands) == 3

    env = launch_env(provider.launch_command(sandbox_id))
    assert env["DEBATE_USER_SIDE"] == "찬성"
    assert env["DEBATE_AGENT_SIDE"] == "반대"
    assert env["RESUME_SESSION_ID"] == ""
    assert env["WORKSPACE_DIR"] == "/workspace/data"
    assert env["CALLBACK_URL"].startswith(f"http://testserver/v1/conversations/{cid}/status")
    assert callback_token(provider.launch_command(sandbox_id)) == "secret-token"


def test_launch_agent_kills_sandbox_when_command_fails() -> None:
    provider = FakeSandboxProvider()
    provider.create_sandbox("t", volume_id="v", mount_path="/m", timeout_ms=1)
    provider.fail_command = True

    with pytest.raises(SandboxError):
        launch_agent(
            provider,
            get_settings(),
            volume_id="vol-1",
            conversation_id=uuid.uuid4(),
            content="x",
            callback_token="t",
        )
    assert provider.killed == ["sbx-2"]
