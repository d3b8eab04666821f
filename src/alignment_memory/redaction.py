# Alignment Memory - Redaction Utilities
# SPDX-License-Identifier: AGPL-3.0

"""
Deterministic redaction for exported event logs.
No LLM - pure regex-based pattern matching.
"""

import re
from typing import Any


# Common secret patterns
PATTERNS = [
    # Anthropic (before the generic sk- rule so the whole key is matched)
    (r'sk-ant-[a-zA-Z0-9\-_]+', '<REDACTED_TOKEN>'),

    # API keys (various services)
    (r'sk-[a-zA-Z0-9]+', '<REDACTED_TOKEN>'),
    (r'Bearer\s+[a-zA-Z0-9\-_]+\.[a-zA-Z0-9\-_]+\.[a-zA-Z0-9\-_]+', '<REDACTED_TOKEN>'),
    (r'Bearer\s+[a-zA-Z0-9\-_]+', '<REDACTED_TOKEN>'),

    # GitHub tokens
    (r'gh[pousr]_[a-zA-Z0-9]{36,}', '<REDACTED_TOKEN>'),

    # AWS keys
    (r'AKIA[0-9A-Z]{16}', '<REDACTED_TOKEN>'),

    # Explicit secrets
    (r'(?i)(api[_-]?key|secret[_-]?key|access[_-]?token|auth[_-]?token)\s*[:=]\s*[\'"]?[a-zA-Z0-9\-_]{16,}[\'"]?', '<REDACTED_SECRET>'),

    # Emails
    (r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}', '<REDACTED_EMAIL>'),

    # Long hex strings (likely tokens/keys) - 32+ hex chars
    (r'\b[0-9a-fA-F]{32,}\b', '<REDACTED_HEX>'),

    # Generic password patterns
    (r'password\s*[:=]\s*[\'"][^\'"]{4,}[\'"]', '<REDACTED_SECRET>'),
]

COMPILED_PATTERNS = [(re.compile(pattern), replacement) for pattern, replacement in PATTERNS]


def redact(text: str) -> str:
    """Redact sensitive patterns from text."""
    if not text:
        return text

    result = text
    for pattern, replacement in COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def redact_payload(value: Any) -> Any:
    """Redact every string inside an event payload. Returns a new structure."""
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, dict):
        return {k: redact_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact_payload(v) for v in value]
    return value

