"""
Credential encryption utilities.

SECURITY REQUIREMENTS:
- Uses Fernet symmetric encryption via ENCRYPTION_KEY env var
- No plaintext tokens outside process memory
- Clear error messages without exposing sensitive data

Usage:
    from src.credentials.encryption import encrypt_token, decrypt_token

    # Encrypt before storage
    encrypted = await encrypt_token(access_token)

    # Decrypt for use (in memory only)
    plaintext = await decrypt_token(encrypted)
"""

import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when credential encryption/decryption fails."""

    def __init__(self, message: str, operation: str = "unknown"):
        self.operation = operation
        super().__init__(message)


def _get_fernet() -> Optional[Fernet]:
    key = os.getenv("ENCRYPTION_KEY")
    if not key:
        return None
    try:
        return Fernet(key.encode("utf-8"))
    except (ValueError, TypeError):
        logger.error(
            "ENCRYPTION_KEY is not a valid Fernet key",
            extra={"operation": "load_key"}
        )
        return None


def validate_encryption_configured() -> bool:
    """Return True when ENCRYPTION_KEY holds a usable Fernet key."""
    return _get_fernet() is not None


async def encrypt_token(plaintext: str) -> str:
    """
    Encrypt an OAuth token for secure storage.

    SECURITY:
    - Input is never logged
    - Returns URL-safe base64 ciphertext safe for database storage

    Args:
        plaintext: The token to encrypt (access, refresh or private-app token)

    Returns:
        Encrypted string safe for database storage

    Raises:
        CredentialEncryptionError: If encryption is not configured
        ValueError: If plaintext is empty
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty token")

    fernet = _get_fernet()
    if fernet is None:
        logger.error(
            "Encryption not configured",
            extra={"operation": "encrypt_token"}
        )
        raise CredentialEncryptionError(
            "Encryption key not configured. Set ENCRYPTION_KEY environment variable.",
            operation="encrypt"
        )

    return fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")


async def decrypt_token(ciphertext: str) -> str:
    """
    Decrypt an encrypted OAuth token.

    SECURITY:
    - Decrypted value must NEVER be logged
    - Decrypted value should only exist in memory

    Args:
        ciphertext: The encrypted token from database

    Returns:
        Decrypted plaintext token (handle with care!)

    Raises:
        CredentialEncryptionError: If decryption fails
        ValueError: If ciphertext is empty
    """
    if not ciphertext:
        raise ValueError("Cannot decrypt empty ciphertext")

    fernet = _get_fernet()
    if fernet is None:
        logger.error(
            "Encryption not configured",
            extra={"operation": "decrypt_token"}
        )
        raise CredentialEncryptionError(
            "Encryption key not configured. Set ENCRYPTION_KEY environment variable.",
            operation="decrypt"
        )

    try:
        return fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        logger.error(
            "Token decryption failed",
            extra={"operation": "decrypt_token", "error_type": type(e).__name__}
        )
        raise CredentialEncryptionError(
            "Failed to decrypt token. Token may be corrupted or encryption key changed.",
            operation="decrypt"
        ) from e


def validate_encryption_ready() -> bool:
    """
    Validate that encryption is properly configured.

    Call this during application startup to fail fast if encryption
    is not configured.

    Raises:
        CredentialEncryptionError: If encryption is not configured
    """
    if not validate_encryption_configured():
        raise CredentialEncryptionError(
            "ENCRYPTION_KEY environment variable is required for credential storage.",
            operation="validate"
        )

    logger.info("Credential encryption validated successfully")
    return True
