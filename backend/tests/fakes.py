"""In-memory sandbox provider plus helpers for picking apart launch commands."""

import json
import shlex
import uuid
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from toron.core.errors import SandboxError
from toron.services.sandbox import SandboxProvider
from toron.services.transcript import session_file_path


class FakeSandboxProvider(SandboxProvider):
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.volumes: dict[str, str] = {}
        self.sandboxes: list[dict[str, Any]] = []
        self.commands: dict[str, list[str]] = {}
        self.killed: list[str] = []
        self.files: dict[tuple[str, str], str] = {}
        self.listings: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.fail_volume = False
        self.fail_sandbox = False
        self.fail_command = False

    def create_volume(self, name: str) -> str:
        if self.fail_volume:
            raise SandboxError("volume quota exceeded")
        volume_id = f"vol-{uuid.uuid4().hex[:8]}"
        self.volumes[volume_id] = name
        return volume_id

    def create_sandbox(self, template: str, *, volume_id: str, mount_path: str, timeout_ms: int) -> str:
        if self.fail_sandbox:
            raise SandboxError("sandbox capacity exhausted")
        sandbox_id = f"sbx-{len(self.sandboxes) + 1}"
        self.sandboxes.append({
            "id": sandbox_id,
            "template": template,
            "volume_id": volume_id,
            "mount_path": mount_path,
            "timeout_ms": timeout_ms,
        })
        self.commands[sandbox_id] = []
        return sandbox_id

    def run_command(self, sandbox_id: str, command: str) -> None:
        if self.fail_command:
            raise SandboxError("command failed")
        self.commands[sandbox_id].append(command)

    def kill_sandbox(self, sandbox_id: str) -> None:
        self.killed.append(sandbox_id)

    def read_file(self, volume_id: str, path: str) -> str:
        try:
            return self.files[(volume_id, path.lstrip("/"))]
        except KeyError:
            raise SandboxError(f"{path} not found") from None

    def list_files(self, volume_id: str, path: str) -> list[dict[str, Any]]:
        try:
            return self.listings[(volume_id, path)]
        except KeyError:
            raise SandboxError(f"{path} not found") from None

    # helpers

    @property
    def launched(self) -> list[str]:
        """Ids of sandboxes whose agent was actually started."""
        return [s["id"] for s in self.sandboxes if self.launch_command(s["id"]) is not None]

    def launch_command(self, sandbox_id: str) -> Optional[str]:
        return next((c for c in self.commands.get(sandbox_id, []) if c.startswith("nohup ")), None)

    def input_command(self, sandbox_id: str) -> Optional[str]:
        return next((c for c in self.commands.get(sandbox_id, []) if c.startswith("printf ")), None)

    def write_session(self, volume_id: str, session_id: str, entries: list[dict[str, Any]]) -> None:
        self.files[(volume_id, session_file_path(session_id))] = "\n".join(
            json.dumps(e, ensure_ascii=False) for e in entries
        )


def launch_env(command: str) -> dict[str, str]:
    """Environment assignments from a ``nohup bash -c '...'`` launch command."""
    inner = shlex.split(command)[3]
    env: dict[str, str] = {}
    for token in shlex.split(inner):
        if token == "npx":
            break
        if "=" in token:
            key, value = token.split("=", 1)
            env[key] = value
    return env


def callback_token(command: str) -> str:
    query = parse_qs(urlparse(launch_env(command)["CALLBACK_URL"]).query)
    return query["token"][0]


def agent_input(command: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """The process_start and session_message lines from the input-writing command."""
    tokens = shlex.split(command)
    return json.loads(tokens[2]), json.loads(tokens[3])


def assistant_entry(text: str) -> dict[str, Any]:
    return {
        "type": "assistant",
        "timestamp": "2026-01-01T00:00:00Z",
        "message": {"role": "assistant", "content": [{"type": "text", "text": text}]},
    }
