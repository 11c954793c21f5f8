"""
Redaction of secret-looking substrings in error messages.

Applied by the normalizer before a message crosses the service boundary
(outside development), and by the logging `RedactFilter` on log messages.
"""
import re

_IP_PATTERN = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_PASSWORD_PATTERN = re.compile(r"password[:=]\s*\S+", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"token[:=]\s*\S+", re.IGNORECASE)


def sanitize_message(message: str | None) -> str:
    """
    Replace IPv4 addresses, `password=...` and `token=...` fragments.

        >>> sanitize_message("connect 10.0.0.5 password=hunter2 failed")
        'connect [IP] password=[HIDDEN] failed'
    """
    if not message:
        return ""
    sanitized = _IP_PATTERN.sub("[IP]", message)
    sanitized = _PASSWORD_PATTERN.sub("password=[HIDDEN]", sanitized)
    sanitized = _TOKEN_PATTERN.sub("token=[HIDDEN]", sanitized)
    return sanitized
