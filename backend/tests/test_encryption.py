"""
Tests for SecretCipher (AES-256-GCM at rest).
"""
import base64

import pytest

from attestation_engine.config import Settings
from attestation_engine.errors import MalformedCredential
from attestation_engine.services.encryption import NONCE_LENGTH, SALT_LENGTH, SecretCipher


@pytest.fixture
def cipher():
    return SecretCipher("test-master-key", "master-v1")


class TestSecretCipher:
    """Encryption of identity documents."""

    def test_json_document_survives_encryption(self, cipher):
        document = {"date_of_birth": "1990-05-15", "address": {"city": "Austin"}}
        token = cipher.encrypt_json(document)

        assert "1990-05-15" not in token
        assert cipher.decrypt_json(token) == document

    def test_fresh_salt_and_nonce_per_message(self, cipher):
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_wire_layout(self, cipher):
        raw = base64.b64decode(cipher.encrypt("x"))
        # salt | nonce | 1 byte ciphertext | 16 byte tag
        assert len(raw) == SALT_LENGTH + NONCE_LENGTH + 1 + 16

    def test_wrong_key_is_rejected(self, cipher):
        token = cipher.encrypt("secret")
        with pytest.raises(MalformedCredential):
            SecretCipher("another-key", "master-v2").decrypt(token)

    def test_tampered_token_is_rejected(self, cipher):
        raw = bytearray(base64.b64decode(cipher.encrypt("secret")))
        raw[-1] ^= 0x01
        with pytest.raises(MalformedCredential):
            cipher.decrypt(base64.b64encode(bytes(raw)).decode("ascii"))

    def test_truncated_token_is_rejected(self, cipher):
        short = base64.b64encode(b"\x00" * (SALT_LENGTH + NONCE_LENGTH)).decode("ascii")
        with pytest.raises(MalformedCredential):
            cipher.decrypt(short)

    def test_invalid_base64_is_rejected(self, cipher):
        with pytest.raises(MalformedCredential):
            cipher.decrypt("not base64 !!")

    def test_missing_master_key(self):
        with pytest.raises(ValueError):
            SecretCipher.from_settings(Settings(encryption_key=None))

    def test_from_settings_carries_key_id(self):
        cipher = SecretCipher.from_settings(Settings(encryption_key="k", encryption_key_id="master-v7"))
        assert cipher.key_id == "master-v7"
