"""At-rest encryption for stored Google OAuth tokens.

Access and refresh tokens are stored in the `profiles` table as Fernet
ciphertext. The Fernet key is derived from SECRET_KEY and ENCRYPTION_SALT with
PBKDF2-HMAC-SHA256 (480,000 iterations, 32-byte key).

```python
from schedule_sync.database.encryption import encrypt_token, decrypt_token

stored = encrypt_token(tokens.access_token)
access_token = decrypt_token(profile.google_access_token_encrypted)
```
"""

from __future__ import annotations

import base64
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 480_000


class TokenCipher:
    """Symmetric cipher for OAuth tokens."""

    def __init__(self, secret_key: str, salt: str):
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode("utf-8"),
            iterations=PBKDF2_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(secret_key.encode("utf-8")))
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str | None) -> str | None:
        if not plaintext:
            return None
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str | None) -> str | None:
        """Decrypt a stored token.

        Raises:
            ValueError: If the ciphertext was not produced with this key
        """
        if not ciphertext:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("Failed to decrypt token: invalid token or key")
            raise ValueError("Failed to decrypt token") from e


_cipher: TokenCipher | None = None


def get_cipher() -> TokenCipher:
    """Get the process-wide cipher, built from settings on first use."""
    global _cipher

    if _cipher is None:
        from schedule_sync.config import get_settings

        settings = get_settings()
        _cipher = TokenCipher(settings.secret_key, settings.encryption_salt)

    return _cipher


def encrypt_token(plaintext: str | None) -> str | None:
    """Encrypt a token for storage. Empty input is stored as NULL."""
    return get_cipher().encrypt(plaintext)


def decrypt_token(ciphertext: str | None) -> str | None:
    """Decrypt a stored token. NULL/empty decrypts to None."""
    return get_cipher().decrypt(ciphertext)


def reset_cipher() -> None:
    """Drop the cached cipher (call after changing SECRET_KEY in tests)."""
    global _cipher
    _cipher = None
