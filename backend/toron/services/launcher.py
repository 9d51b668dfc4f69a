"""Starting one agent turn inside a fresh sandbox.

The launch is fire-and-forget: we never hold a connection to the agent
process. Its input is written to a file, the agent is started under ``nohup``
reading that file as stdin, and it reports back through ``CALLBACK_URL`` when
it finishes. Debate framing travels as environment variables, which the agent
harness reads verbatim.
"""

import json
import logging
import shlex
import uuid
from dataclasses import dataclass
from typing import Optional

from toron.core.config import Settings
from toron.core.errors import SandboxError
from toron.services.sandbox import VOLUME_MOUNT_PATH, SandboxProvider, kill_sandbox_quietly

logger = logging.getLogger(__name__)

AGENT_INPUT_PATH = "/tmp/agent_input.txt"
AGENT_ENTRYPOINT = "npx tsx /app/agent.mts"
AGENT_STDOUT_LOG = "/tmp/agent_stdout.log"
AGENT_STDERR_LOG = "/tmp/agent_stderr.log"

# Session files live under ~/.claude; point it at the volume so they survive the sandbox.
SETUP_COMMAND = (
    f"mkdir -p {VOLUME_MOUNT_PATH}/.claude && "
    f"cp -a /home/user/.claude/. {VOLUME_MOUNT_PATH}/.claude/ && "
    "rm -rf /home/user/.claude && "
    f"ln -sf {VOLUME_MOUNT_PATH}/.claude /home/user/.claude"
)


@dataclass
class DebateContext:
    debate_topic: Optional[str] = None
    user_side: Optional[str] = None
    agent_side: Optional[str] = None
    turn_count: int = 0
    is_verdict_request: bool = False
    intervention_mode: Optional[str] = None  # losing | winning
    agent_role: Optional[str] = None  # agent-a | agent-b
    ai_vs_ai_mode: bool = False

    def env(self) -> dict[str, str]:
        return {
            "DEBATE_TOPIC": self.debate_topic or "",
            "DEBATE_USER_SIDE": self.user_side or "",
            "DEBATE_AGENT_SIDE": self.agent_side or "",
            "DEBATE_TURN": str(self.turn_count or 0),
            "VERDICT_MODE": "true" if self.is_verdict_request else "",
            "INTERVENTION_MODE": self.intervention_mode or "",
            "AGENT_ROLE": self.agent_role or "",
            "AI_VS_AI_MODE": "true" if self.ai_vs_ai_mode else "",
        }


def callback_url(base_url: str, conversation_id: uuid.UUID, token: str) -> str:
    return f"{base_url}/v1/conversations/{conversation_id}/status?token={token}"


def agent_input_lines(content: str, session_id: Optional[str] = None) -> tuple[str, str]:
    """The two stdin lines the agent expects: process_start, then session_message."""
    process_start: dict[str, str] = {"type": "process_start"}
    if session_id:
        process_start["session_id"] = session_id
    session_message = {"type": "session_message", "text": content}
    return (
        json.dumps(process_start, ensure_ascii=False, separators=(",", ":")),
        json.dumps(session_message, ensure_ascii=False, separators=(",", ":")),
    )


def build_input_command(content: str, session_id: Optional[str] = None) -> str:
    process_start, session_message = agent_input_lines(content, session_id)
    return (
        f"printf '%s\\n%s\\n' {shlex.quote(process_start)} {shlex.quote(session_message)}"
        f" > {AGENT_INPUT_PATH}"
    )


def build_launch_command(env: dict[str, str]) -> str:
    assignments = " ".join(f"{key}={shlex.quote(value)}" for key, value in env.items())
    inner = (
        f"cd {VOLUME_MOUNT_PATH} && {assignments} {AGENT_ENTRYPOINT}"
        f" < {AGENT_INPUT_PATH} >> {AGENT_STDOUT_LOG} 2>> {AGENT_STDERR_LOG}"
    )
    return f"nohup bash -c {shlex.quote(inner)} &>/dev/null &"


def launch_agent(
    provider: SandboxProvider,
    settings: Settings,
    *,
    volume_id: str,
    conversation_id: uuid.UUID,
    content: str,
    callback_token: str,
    session_id: Optional[str] = None,
    context: Optional[DebateContext] = None,
) -> str:
    """Create a sandbox and start the agent in it. Returns the sandbox id without waiting for the agent."""
    sandbox_id = provider.create_sandbox(
        settings.sandbox_template,
        volume_id=volume_id,
        mount_path=VOLUME_MOUNT_PATH,
        timeout_ms=settings.sandbox_timeout_ms,
    )

    env = {
        "WORKSPACE_DIR": VOLUME_MOUNT_PATH,
        "ANTHROPIC_API_KEY": settings.anthropic_api_key,
        "CALLBACK_URL": callback_url(settings.base_url, conversation_id, callback_token),
        "RESUME_SESSION_ID": session_id or "",
    }
    if context is not None:
        env.update(context.env())

    try:
        provider.run_command(sandbox_id, SETUP_COMMAND)
        provider.run_command(sandbox_id, build_input_command(content, session_id))
        provider.run_command(sandbox_id, build_launch_command(env))
    except SandboxError:
        kill_sandbox_quietly(provider, sandbox_id)
        raise

    logger.info(
        "launched agent for conversation %s in sandbox %s (resume=%s)",
        conversation_id,
        sandbox_id,
        bool(session_id),
    )
    return sandbox_id
