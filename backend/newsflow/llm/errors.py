from __future__ import annotations

from typing import Optional

# Raw bodies embedded in error messages are cut to this many characters
BODY_PREVIEW_CHARS = 500


def preview(body: str, limit: int = BODY_PREVIEW_CHARS) -> str:
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


class LLMError(Exception):
    """Error raised by the model gateway."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class LLMConfigError(LLMError):
    """Provider configuration is incomplete; raised before any network call."""

    def __init__(self, message: str, field: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider)
        self.field = field


class LLMHTTPError(LLMError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str, provider: Optional[str] = None):
        super().__init__(f"API returned error {status_code}: {preview(body)}", provider=provider)
        self.status_code = status_code
        self.body = body


class LLMDecodeError(LLMError):
    """Response body could not be parsed, or held no reply."""

    def __init__(self, message: str, body: str = "", provider: Optional[str] = None):
        if body:
            message = f"{message}, body: {preview(body)}"
        super().__init__(message, provider=provider)
        self.body = body
