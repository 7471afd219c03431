"""
Secret Cipher

AES-256-GCM encryption of identity attributes and credential bundles.
A fresh key is derived per message from the master key with PBKDF2-SHA512.

Wire format (base64): salt(64) | nonce(12) | ciphertext+tag
"""

import base64
import json
import os
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import Settings
from ..errors import MalformedCredential


SALT_LENGTH = 64
NONCE_LENGTH = 12
KEY_LENGTH = 32
ITERATIONS = 100_000


class SecretCipher:
    """Encrypts and decrypts JSON documents under one master key."""

    def __init__(self, master_key: str, key_id: str):
        if not master_key:
            raise ValueError("ENCRYPTION_KEY not set")
        self._master_key = master_key.encode("utf-8")
        self.key_id = key_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretCipher":
        return cls(settings.encryption_key, settings.encryption_key_id)

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=ITERATIONS,
        )
        return kdf.derive(self._master_key)

    def encrypt(self, plaintext: str) -> str:
        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)
        sealed = AESGCM(self._derive_key(salt)).encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(salt + nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            combined = base64.b64decode(token, validate=True)
        except (ValueError, TypeError) as e:
            raise MalformedCredential("Encrypted secret is not valid base64") from e
        if len(combined) <= SALT_LENGTH + NONCE_LENGTH:
            raise MalformedCredential("Encrypted secret is truncated")

        salt = combined[:SALT_LENGTH]
        nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
        sealed = combined[SALT_LENGTH + NONCE_LENGTH:]
        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise MalformedCredential("Encrypted secret failed authentication") from e
        return plaintext.decode("utf-8")

    def encrypt_json(self, document: Dict[str, Any]) -> str:
        return self.encrypt(json.dumps(document, sort_keys=True))

    def decrypt_json(self, token: str) -> Dict[str, Any]:
        try:
            return json.loads(self.decrypt(token))
        except json.JSONDecodeError as e:
            raise MalformedCredential("Decrypted secret is not JSON") from e
