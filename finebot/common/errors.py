"""Error types raised by the provider, codec and messaging layers.

Each error carries a stable `code` that the orchestrator records on failed
attempts and uses as the `reason` metric label.
"""

from typing import Any, Optional


class FineBotError(Exception):
    code = "finebot_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details


class ProviderError(FineBotError):
    """The payment provider rejected a call or could not be reached."""

    code = "provider_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        debug_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.debug_id = debug_id


class NoApprovalLinkError(FineBotError):
    """A created payment came back without an `approval_url` link."""

    code = "no_approval_link"


class DecodeError(FineBotError):
    code = "decode_error"

    def __init__(self, message: str, field: str):
        super().__init__(message, {"field": field})
        self.field = field


class MissingFieldError(DecodeError):
    code = "missing_field"

    def __init__(self, field: str):
        super().__init__(f"missing required parameter: {field}", field)


class MalformedEncodingError(DecodeError):
    code = "malformed_encoding"


class MessagingError(FineBotError):
    """The bot connector refused or failed to deliver a message."""

    code = "messaging_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
