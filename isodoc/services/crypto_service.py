"""
AES-256-CBC file encryption for the encrypted document cache.

Layout on disk: 16-byte IV followed by the PKCS7-padded ciphertext. The key
is the SHA-256 digest of ENCRYPTION_KEY.
"""

import hashlib
import logging
import os
import secrets
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

IV_LENGTH = 16
CHUNK_SIZE = 64 * 1024


class IntegrityError(Exception):
    """Encrypted content could not be decrypted."""


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileCipher:
    def __init__(self, key_material: Optional[str] = None):
        if not key_material:
            logger.warning("ENCRYPTION_KEY not set, using a temporary key; encrypted files will be unreadable after restart")
            key_material = secrets.token_hex(32)
        self._key = hashlib.sha256(key_material.encode("utf-8")).digest()

    def encrypt_bytes(self, data: bytes) -> bytes:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt_bytes(self, blob: bytes) -> bytes:
        if len(blob) < IV_LENGTH * 2 or (len(blob) - IV_LENGTH) % IV_LENGTH:
            raise IntegrityError("Encrypted payload has an invalid length")
        iv, ciphertext = blob[:IV_LENGTH], blob[IV_LENGTH:]
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise IntegrityError("Encrypted payload could not be decrypted") from e

    def encrypt_file(self, source_path: str, dest_path: str) -> str:
        """Encrypt a file and return the SHA-256 of the plaintext."""
        with open(source_path, "rb") as fh:
            data = fh.read()
        os.makedirs(os.path.dirname(os.path.abspath(dest_path)), exist_ok=True)
        with open(dest_path, "wb") as fh:
            fh.write(self.encrypt_bytes(data))
        return hash_bytes(data)

    def decrypt_file(self, path: str) -> bytes:
        with open(path, "rb") as fh:
            return self.decrypt_bytes(fh.read())

    def verify_file(self, path: str, expected_hash: str) -> bool:
        try:
            return hash_bytes(self.decrypt_file(path)) == expected_hash
        except (IntegrityError, OSError) as e:
            logger.warning(f"Integrity check failed for {path}: {e}")
            return False
