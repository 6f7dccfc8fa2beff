import re
from typing import Optional


def redact_secrets(text: str) -> str:
    """Redact tokens and keys from log lines and error strings."""
    if not isinstance(text, str):
        return text

    redacted = text

    # Query params like key=, api_key=, access_token=, refresh_token=, client_secret=
    redacted = re.sub(
        r"(?i)\b((?:api[_-]?)?key|(?:access|refresh)[_-]?token|token|client[_-]?secret|secret|password)=([^&\s\"']+)",
        r"\1=***REDACTED***",
        redacted,
    )

    # JSON bodies echoing credentials back: "access_token": "..."
    redacted = re.sub(
        r"(?i)(\"(?:access_token|refresh_token|client_secret|password)\"\s*:\s*\")([^\"]+)(\")",
        r"\1***REDACTED***\3",
        redacted,
    )

    # Bearer / Basic authorization values
    redacted = re.sub(r"(?i)\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=\-]+", r"\1 ***REDACTED***", redacted)

    # Telegram bot tokens embedded in API paths: /bot123456:ABC-DEF/sendMessage
    redacted = re.sub(r"/bot\d+:[A-Za-z0-9_\-]+", "/bot***REDACTED***", redacted)

    return redacted


def mask_token(token: Optional[str], visible: int = 4) -> str:
    """Show only the tail of a credential, e.g. for "refreshed token ...abcd" log lines."""
    if not token:
        return "<none>"
    if len(token) <= visible:
        return "*" * len(token)
    return "..." + token[-visible:]
