"""
Custom exception hierarchy for the Decision Memo service.
Provides structured error handling with user-facing remediation text.
"""

from typing import Any, Optional


class DecisionMemoError(Exception):
    """Base exception for all Decision Memo errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Authentication Errors (401)
# =============================================================================


class AuthenticationError(DecisionMemoError):
    """Inbound request could not be authenticated."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            message=message,
            code="AUTHENTICATION_REQUIRED",
            status_code=401,
        )


# =============================================================================
# Ingestion Errors
# =============================================================================


class IngestionError(DecisionMemoError):
    """
    Context could not be captured from the user's input.

    Always carries a complete, user-facing sentence in ``user_message``.
    """

    def __init__(
        self,
        message: str,
        user_message: str,
        code: str = "INGESTION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code=code, details=details, status_code=422)
        self.user_message = user_message


class UnsupportedFileTypeError(IngestionError):
    """Uploaded file is not plain text."""

    def __init__(self, filetype: str) -> None:
        super().__init__(
            message=f"Unsupported file type: {filetype}",
            user_message=(
                "I can only process text (.txt) files. "
                "Please upload a text file or paste your context directly."
            ),
            code="UNSUPPORTED_FILE_TYPE",
            details={"filetype": filetype},
        )


class FileDownloadFailedError(IngestionError):
    """File metadata lookup or download failed."""

    def __init__(self, file_id: str, reason: str) -> None:
        super().__init__(
            message=f"Could not download file content: {reason}",
            user_message=(
                "Sorry, there was an error processing your file. "
                "Please try pasting the content directly instead."
            ),
            code="FILE_DOWNLOAD_FAILED",
            details={"file_id": file_id, "reason": reason},
        )


class MissingScopeError(IngestionError):
    """The bot token lacks the OAuth scope needed to read files."""

    def __init__(self, scope: str = "files:read") -> None:
        super().__init__(
            message=f"Missing OAuth scope: {scope}",
            user_message=(
                "Sorry, I don't have permission to read files yet. "
                f"The app needs to be reinstalled with the '{scope}' permission. "
                "Please paste the content directly instead or contact the administrator "
                "to update permissions."
            ),
            code="MISSING_SCOPE",
            details={"scope": scope},
        )
        self.scope = scope


class ThreadAccessDeniedError(IngestionError):
    """Thread replies could not be read, usually because the bot is not in the channel."""

    def __init__(self, channel_id: str, bot_name: str, reason: str = "") -> None:
        user_message = (
            ":warning: Thanks for using the Decision Memo tool. Before we can proceed, "
            f"*I need to be added to the <#{channel_id}> channel so I can access thread messages.*\n\n"
            "*To add me to the channel:*\n"
            f"1. Go to <#{channel_id}>\n"
            f"2. Type and send: `/invite @{bot_name}`\n"
            "3. Launch the message shortcut again in your thread\n\n"
        )
        super().__init__(
            message=f"Cannot read thread replies in {channel_id}: {reason}",
            user_message=user_message,
            code="THREAD_ACCESS_DENIED",
            details={"channel_id": channel_id, "reason": reason},
        )
        self.channel_id = channel_id


# =============================================================================
# External Service Errors (502, 504)
# =============================================================================


class ExternalServiceError(DecisionMemoError):
    """Error communicating with external service."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=f"{service_name} error: {message}",
            code="EXTERNAL_SERVICE_ERROR",
            details={"service": service_name, **(details or {})},
            status_code=502,
        )


class MessagingGatewayError(ExternalServiceError):
    """Slack Web API call failed."""

    def __init__(
        self,
        method: str,
        error: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            service_name="Slack",
            message=f"{method} failed: {error}",
            details={"method": method, "slack_error": error, **(details or {})},
        )
        self.code = "MESSAGING_GATEWAY_ERROR"
        self.method = method
        self.error = error

    @property
    def is_missing_scope(self) -> bool:
        return self.error == "missing_scope"


class DraftGeneratorError(ExternalServiceError):
    """LLM completion failed (network, auth, rate limit, malformed output)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="Draft generator", message=message, details=details)
        self.code = "DRAFT_GENERATOR_ERROR"


class DraftGeneratorTimeoutError(DraftGeneratorError):
    """LLM completion did not finish in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Completion timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds},
        )
        self.code = "DRAFT_GENERATOR_TIMEOUT"
        self.status_code = 504


# =============================================================================
# Conversation Protocol Errors
# =============================================================================


class ProtocolError(DecisionMemoError):
    """Event arrived in a stage that does not expect it."""

    def __init__(self, stage: str, event_type: str) -> None:
        super().__init__(
            message=f"Unexpected {event_type} in stage '{stage}'",
            code="PROTOCOL_ERROR",
            details={"stage": stage, "event_type": event_type},
            status_code=409,
        )


class StateTransitionError(DecisionMemoError):
    """Invalid state transition."""

    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(
            message=f"Invalid transition from '{from_state}' to '{to_state}'",
            code="INVALID_TRANSITION",
            details={"from": from_state, "to": to_state},
            status_code=409,
        )
