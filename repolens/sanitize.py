"""Redaction of secrets and identifying details from source snippets."""

from __future__ import annotations

import re
from typing import List, Tuple

_RULES: List[Tuple[re.Pattern, str]] = [
    # PEM blocks first, before the line-based rules cut them apart
    (re.compile(r"-----BEGIN [^-]+-----[\s\S]+?-----END [^-]+-----"), "<REDACTED_PRIVATE_KEY>"),
    (re.compile(r"^[A-Z_][A-Z0-9_]*\s*=\s*[\"']?.+[\"']?$", re.MULTILINE), "<REDACTED_ENV_VAR>"),
    (
        re.compile(
            r"([\"']?(?:API|TOKEN|SECRET|PASSWORD|KEY)[A-Z0-9_]*[\"']?\s*[:=]\s*)[\"'][^\"']+[\"']",
            re.IGNORECASE,
        ),
        r'\1"<REDACTED>"',
    ),
    (re.compile(r"\b(?:mongodb(?:\+srv)?|postgres(?:ql)?|mysql|redis)://[^'\" \n]+", re.IGNORECASE), "<REDACTED_DB_URL>"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "<REDACTED_EMAIL>"),
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "<REDACTED_IP>"),
]


def sanitize_code(code: str) -> str:
    """Replace credentials, connection strings, e-mails and IPs in *code*."""
    if not code:
        return ""
    cleaned = code
    for pattern, replacement in _RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned
