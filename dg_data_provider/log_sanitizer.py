"""
Log sanitization utilities to prevent credential leakage.

Error messages from the HTTP layer can echo request headers or URLs with
embedded credentials; everything logged by the provider goes through here.
"""

import re
from urllib.parse import urlsplit, urlunsplit


SENSITIVE_PATTERNS = [
    (re.compile(r'(client_secret["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(pat["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'((?:bearer|basic)\s+)([a-zA-Z0-9\-._~+/]+=*)', re.IGNORECASE), r'\1***REDACTED***'),
    (re.compile(r'(authorization["\']?\s*[:=]\s*["\']?)([^"\'\s]+)', re.IGNORECASE), r'\1***REDACTED***'),
]


def sanitize_log_message(message: str) -> str:
    """
    Redact tokens, secrets and authorization headers from a log message.

    Args:
        message: The log message to sanitize

    Returns:
        Sanitized log message
    """
    if not message:
        return message

    sanitized = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    return sanitized


def sanitize_url(url: str) -> str:
    """Strip user-info (``user:pat@``) from a URL before it is logged."""
    if not url:
        return url

    parts = urlsplit(url)
    if '@' not in parts.netloc:
        return url

    host = parts.netloc.rsplit('@', 1)[1]
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


def safe_log_error(error: Exception, context: str = "") -> str:
    """
    Build a log line for an exception with sensitive data redacted.

    Args:
        error: The exception
        context: Additional context (e.g., "Authentication failed")
    """
    sanitized_error = sanitize_log_message(str(error))
    error_type = type(error).__name__

    if context:
        return f"{context}: {error_type}: {sanitized_error}"
    return f"{error_type}: {sanitized_error}"
