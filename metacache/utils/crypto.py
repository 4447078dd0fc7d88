import hashlib
import logging
import os
import secrets

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

IV_SIZE = 16


def derive_key(secret: str) -> bytes:
    """Derive a 256-bit AES key from a configured secret."""
    if not secret:
        raise ValueError("Encryption secret cannot be empty")
    return hashlib.sha256(secret.encode("utf-8")).digest()


class PayloadCipher:
    """AES-256-CBC with a random IV prepended to every ciphertext."""

    def __init__(self, secret: str):
        self._key = derive_key(secret)

    def encrypt(self, data: bytes) -> bytes:
        iv = os.urandom(IV_SIZE)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt a payload produced by :meth:`encrypt`.

        Raises:
            ValueError: If the payload is truncated, the key is wrong or the
                padding is invalid
        """
        if len(data) < IV_SIZE * 2 or (len(data) - IV_SIZE) % IV_SIZE:
            raise ValueError("Encrypted payload has invalid length")

        iv, ciphertext = data[:IV_SIZE], data[IV_SIZE:]
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()


def generate_encryption_key() -> str:
    """Generate a random secret suitable for ``encryption_key``."""
    return secrets.token_urlsafe(32)
