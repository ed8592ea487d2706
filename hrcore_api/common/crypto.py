# hrcore_api/common/crypto.py
"""
Field-level encryption for sensitive employee data.

Values are stored as Fernet tokens, which are randomized, so equality lookups
go through ``lookup_hash`` instead: an HMAC-SHA256 of the normalized value,
keyed from the same secret.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import re
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app


@lru_cache(maxsize=8)
def _fernet_for(secret: str) -> Fernet:
    # Fernet wants 32 url-safe base64 bytes; derive them from the configured secret
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())
    return Fernet(key)


def _secret() -> str:
    return current_app.config["ENCRYPTION_KEY"]


def normalize_national_id(raw: str) -> str:
    """Strip punctuation and spaces so '123.456.789-00' and '12345678900' match."""
    return re.sub(r"[^0-9A-Za-z]", "", raw or "").upper()


def encrypt_value(plain_text: str) -> str:
    if not plain_text:
        return ""
    return _fernet_for(_secret()).encrypt(plain_text.encode()).decode()


def decrypt_value(token: str) -> str:
    if not token:
        return ""
    try:
        return _fernet_for(_secret()).decrypt(token.encode()).decode()
    except InvalidToken:
        current_app.logger.error("national id could not be decrypted with the configured key")
        raise


def lookup_hash(raw: str) -> str:
    digest = hmac.new(
        ("lookup:" + _secret()).encode(),
        normalize_national_id(raw).encode(),
        hashlib.sha256,
    )
    return digest.hexdigest()


def mask(value: str | None) -> str | None:
    if not value:
        return value
    return "*" * max(len(value) - 4, 0) + value[-4:]
