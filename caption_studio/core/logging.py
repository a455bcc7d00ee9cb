"""
Purpose:
- One place to configure stdlib logging for the service.
- Redact secrets (API keys, tokens) before request context hits the logs.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Optional

# Keys containing any of these fragments are fully masked
_SENSITIVE_FIELDS = {
    "api_key",
    "apikey",
    "key",
    "password",
    "token",
    "secret",
    "authorization",
}

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package logger once."""
    root = logging.getLogger("caption_studio")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)


def _redact_value(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, bool)):
        return value

    # bytes: show length instead of content
    if isinstance(value, bytes):
        return f"<bytes: length={len(value)}>"

    if hasattr(value, "model_dump"):
        value = value.model_dump()

    if isinstance(value, dict):
        return redact_context(value)

    if isinstance(value, (list, tuple)):
        redacted = [_redact_value(item) for item in value]
        return redacted if isinstance(value, list) else tuple(redacted)

    # base64 payloads and long prompts
    if isinstance(value, str) and len(value) > 100:
        return f"{value[:50]}...{value[-20:]} ({len(value)} chars)"

    return value


def redact_context(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Return a copy of context safe to log:
    - sensitive keys -> "***REDACTED***"
    - bytes / long strings abbreviated, nested structures processed recursively
    """
    if not context:
        return {}

    redacted: Dict[str, Any] = {}
    for key, value in context.items():
        key_lower = str(key).lower()
        if any(s in key_lower for s in _SENSITIVE_FIELDS):
            redacted[key] = "***REDACTED***" if value else value
        else:
            redacted[key] = _redact_value(value)
    return redacted
