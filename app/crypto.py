"""
Encryption of session payloads at rest using Fernet (symmetric, from cryptography).

The token response and cached profile are serialized to JSON and encrypted
before being written to the sessions table, and decrypted only when a session
is loaded.
"""
from cryptography.fernet import Fernet, InvalidToken

from config import TOKEN_ENCRYPTION_KEY

fernet = Fernet(TOKEN_ENCRYPTION_KEY.encode())

__all__ = ["InvalidToken", "decrypt", "encrypt"]


def encrypt(value: str) -> str:
    """Encrypt a serialized session payload for storage."""
    return fernet.encrypt(value.encode()).decode()


def decrypt(value: str) -> str:
    """Decrypt a stored payload. Raises InvalidToken if the key does not match."""
    return fernet.decrypt(value.encode()).decode()
