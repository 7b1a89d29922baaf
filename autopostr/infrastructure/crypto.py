# autopostr/infrastructure/crypto.py
"""
At-rest encryption for platform access tokens.

OAUTH_TOKEN_KEY holds one or more comma separated Fernet keys. The first one
encrypts; all of them are tried on decrypt so an old key can be rotated out.
"""
import os
from typing import Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = structlog.get_logger(__name__)


def _load_cipher() -> MultiFernet:
    raw = os.getenv("OAUTH_TOKEN_KEY", "")
    keys = [k.strip() for k in raw.split(",") if k.strip()]
    if not keys:
        # ciphertexts written with a generated key are unreadable after restart
        logger.warning("oauth_token_key_missing_using_ephemeral")
        keys = [Fernet.generate_key().decode()]
    return MultiFernet([Fernet(k.encode()) for k in keys])


cipher = _load_cipher()


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    return None if plaintext is None else cipher.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    """Returns None for an empty value or one no configured key can open."""
    if not ciphertext:
        return None
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("token_decrypt_failed", length=len(ciphertext))
        return None
