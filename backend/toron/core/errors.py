"""Domain errors raised by the services layer.

Routers validate request bodies themselves and raise ``HTTPException``; these
exceptions come out of the orchestrator and the sandbox adapter and are mapped
to responses by the handlers registered in ``toron.main``.
"""

from typing import Optional

from fastapi import status


class ToronError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InvalidRequest(ToronError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request"


class ConversationNotFound(ToronError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Conversation not found"


class ConversationBusy(ToronError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conversation is already running"


class CallbackRejected(ToronError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Invalid callback token"


class SandboxError(ToronError):
    """The sandbox provider failed; the message shown to clients stays generic."""

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Sandbox provider error"
