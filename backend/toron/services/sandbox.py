"""Adapter for the external sandbox provider.

The orchestrator only needs a handful of provider operations: volumes that
outlive a turn, sandboxes that run one agent turn, one-shot shell commands
inside a sandbox, and reading files back from a volume. ``SandboxProvider``
names that surface; ``MoruSandboxProvider`` implements it over the provider's
REST API. Tests swap in an in-memory provider through the FastAPI dependency.
"""

import logging
from typing import Any, Optional

import httpx

from toron.core.config import Settings, get_settings
from toron.core.errors import SandboxError

logger = logging.getLogger(__name__)

VOLUME_MOUNT_PATH = "/workspace/data"

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class SandboxProvider:
    def create_volume(self, name: str) -> str:
        raise NotImplementedError

    def create_sandbox(self, template: str, *, volume_id: str, mount_path: str, timeout_ms: int) -> str:
        raise NotImplementedError

    def run_command(self, sandbox_id: str, command: str) -> None:
        raise NotImplementedError

    def kill_sandbox(self, sandbox_id: str) -> None:
        raise NotImplementedError

    def read_file(self, volume_id: str, path: str) -> str:
        raise NotImplementedError

    def list_files(self, volume_id: str, path: str) -> list[dict[str, Any]]:
        raise NotImplementedError


class MoruSandboxProvider(SandboxProvider):
    def __init__(self, api_url: str, api_key: str, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(
            base_url=api_url,
            headers={"X-API-Key": api_key},
            timeout=DEFAULT_TIMEOUT,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SandboxError(
                f"{method} {path} failed: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SandboxError(f"{method} {path} failed: {exc}") from exc
        return resp

    def create_volume(self, name: str) -> str:
        data = self._request("POST", "/volumes", json={"name": name}).json()
        return data["volumeId"]

    def create_sandbox(self, template: str, *, volume_id: str, mount_path: str, timeout_ms: int) -> str:
        data = self._request(
            "POST",
            "/sandboxes",
            json={
                "templateID": template,
                "timeout": timeout_ms // 1000,
                "volumeId": volume_id,
                "volumeMountPath": mount_path,
            },
        ).json()
        return data["sandboxID"]

    def run_command(self, sandbox_id: str, command: str) -> None:
        self._request("POST", f"/sandboxes/{sandbox_id}/commands", json={"cmd": command})

    def kill_sandbox(self, sandbox_id: str) -> None:
        self._request("DELETE", f"/sandboxes/{sandbox_id}")

    def read_file(self, volume_id: str, path: str) -> str:
        absolute = path if path.startswith("/") else f"/{path}"
        return self._request(
            "GET",
            f"/volumes/{volume_id}/files/download",
            params={"path": absolute},
        ).text

    def list_files(self, volume_id: str, path: str) -> list[dict[str, Any]]:
        data = self._request("GET", f"/volumes/{volume_id}/files", params={"path": path}).json()
        files = data.get("files", []) if isinstance(data, dict) else data
        return [
            {"name": f["name"], "type": f["type"], "size": f.get("size"), "path": f["path"]}
            for f in files
        ]


def build_file_tree(
    provider: SandboxProvider,
    volume_id: str,
    path: str = "/",
    max_depth: int = 5,
) -> list[dict[str, Any]]:
    """Recursive listing, directories first then by name. Unreadable directories come back empty."""

    def build_node(current: str, depth: int) -> list[dict[str, Any]]:
        if depth > max_depth:
            return []
        try:
            files = provider.list_files(volume_id, current)
        except SandboxError:
            logger.debug("could not list %s on volume %s", current, volume_id)
            return []

        nodes = []
        for f in files:
            node = dict(f)
            if f["type"] == "directory":
                node["children"] = build_node(f["path"], depth + 1)
            nodes.append(node)
        nodes.sort(key=lambda n: (n["type"] != "directory", n["name"]))
        return nodes

    return build_node(path, 0)


def kill_sandbox_quietly(provider: SandboxProvider, sandbox_id: str) -> None:
    """Kill a sandbox that may already be gone. Failures are logged, never raised."""
    try:
        provider.kill_sandbox(sandbox_id)
    except SandboxError as exc:
        logger.warning("kill sandbox %s failed (ignored): %s", sandbox_id, exc)


_provider: Optional[SandboxProvider] = None


def get_sandbox_provider() -> SandboxProvider:
    global _provider
    if _provider is None:
        settings: Settings = get_settings()
        _provider = MoruSandboxProvider(settings.sandbox_api_url, settings.sandbox_api_key)
    return _provider
