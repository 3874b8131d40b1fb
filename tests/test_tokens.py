"""Tests for token generation and secret encryption."""

import pytest
from cryptography.fernet import Fernet

from workspace_collab.services.crypto import SecretBox, SecretDecryptionError
from workspace_collab.services.tokens import decode_token, generate_invitation_token, generate_state_token
from workspace_collab.settings import Settings


class TestInvitationTokens:
    """Invitation token format."""

    def test_url_safe_without_padding(self):
        token = generate_invitation_token()

        assert len(token) == 43
        assert "=" not in token
        assert "+" not in token and "/" not in token

    def test_decodes_to_32_bytes(self):
        assert len(decode_token(generate_invitation_token())) == 32

    def test_unique(self):
        tokens = {generate_invitation_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_state_tokens_unique(self):
        assert generate_state_token() != generate_state_token()


class TestSecretBox:
    """Encryption of provider secrets."""

    def test_round_trip(self):
        box = SecretBox(Fernet.generate_key())
        ciphertext = box.encrypt("client-secret")

        assert ciphertext != b"client-secret"
        assert box.decrypt(ciphertext) == "client-secret"

    def test_empty_values_stay_empty(self):
        box = SecretBox(Fernet.generate_key())
        assert box.encrypt("") is None
        assert box.encrypt(None) is None
        assert box.decrypt(None) is None

    def test_wrong_key(self):
        ciphertext = SecretBox(Fernet.generate_key()).encrypt("client-secret")

        with pytest.raises(SecretDecryptionError):
            SecretBox(Fernet.generate_key()).decrypt(ciphertext)

    def test_key_derived_from_secret_key(self):
        first = SecretBox.from_settings(Settings(secret_key="one", external_auth_encryption_key=None))
        same = SecretBox.from_settings(Settings(secret_key="one", external_auth_encryption_key=None))
        other = SecretBox.from_settings(Settings(secret_key="two", external_auth_encryption_key=None))

        ciphertext = first.encrypt("value")
        assert same.decrypt(ciphertext) == "value"
        with pytest.raises(SecretDecryptionError):
            other.decrypt(ciphertext)

    def test_explicit_key_wins(self):
        key = Fernet.generate_key().decode()
        box = SecretBox.from_settings(Settings(secret_key="one", external_auth_encryption_key=key))

        assert SecretBox(key).decrypt(box.encrypt("value")) == "value"
