"""AES-256-GCM helpers for customer contact fields stored at rest."""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
KEY_SIZE = 32


@dataclass
class CryptoService:
    """Encrypts and decrypts text using AES-256-GCM."""

    key: bytes

    @classmethod
    def from_base64_key(cls, key_b64: str) -> "CryptoService":
        key = base64.urlsafe_b64decode(key_b64.encode("utf-8"))
        if len(key) != KEY_SIZE:
            raise RuntimeError("Encryption key must decode to 32 bytes for AES-256.")
        return cls(key=key)

    @staticmethod
    def generate_base64_key() -> str:
        """Generate a base64-encoded 32-byte key."""
        return base64.urlsafe_b64encode(os.urandom(KEY_SIZE)).decode("utf-8")

    def encrypt_text(self, plain_text: str) -> bytes:
        """Encrypt UTF-8 text and return nonce+ciphertext bytes."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self.key).encrypt(nonce, plain_text.encode("utf-8"), None)

    def decrypt_text(self, encrypted: bytes | None) -> str:
        """Decrypt nonce+ciphertext bytes; a NULL column decrypts to an empty string."""
        if not encrypted:
            return ""
        nonce, cipher_text = encrypted[:NONCE_SIZE], encrypted[NONCE_SIZE:]
        return AESGCM(self.key).decrypt(nonce, cipher_text, None).decode("utf-8")
