"""Masking of broker tokens and adb keys before they reach logs or the console."""

from __future__ import annotations

import re
from typing import Any

TOKEN_KEYS = {"token", "apitoken", "authorization", "password", "secret"}
ADB_KEY_KEYS = {"adbkey", "publickey"}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_key(key: Any) -> str:
    """`adbKey`, `adb_key` and `ADB-Key` all normalize to `adbkey`."""
    return _NON_ALNUM_RE.sub("", str(key).lower())


def mask_token(value: Any, *, visible: int = 2) -> str:
    text = str(value or "")
    if len(text) <= visible * 2:
        return "*" * len(text)
    return f"{text[:visible]}{'*' * (len(text) - visible * 2)}{text[-visible:]}"


def mask_adb_key(value: Any) -> str:
    """Keep only the size and the `user@host` comment of an adb public key."""
    body, _, comment = str(value or "").strip().partition(" ")
    if not body:
        return ""
    label = f"<adb key, {len(body)} chars>"
    return f"{label} {comment.strip()}" if comment.strip() else label


def redact_secrets(value: Any) -> Any:
    """Return a copy of nested dicts/lists with secret values masked."""
    if isinstance(value, dict):
        output: dict[Any, Any] = {}
        for key, item in value.items():
            name = normalize_key(key)
            if name in TOKEN_KEYS:
                output[key] = mask_token(item)
            elif name in ADB_KEY_KEYS:
                output[key] = mask_adb_key(item)
            else:
                output[key] = redact_secrets(item)
        return output
    if isinstance(value, (list, tuple)):
        return [redact_secrets(item) for item in value]
    return value
