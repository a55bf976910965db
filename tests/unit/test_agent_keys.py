"""Unit tests for agent key tokens."""

import uuid

import pytest

from tracker.kernel.identity.agent_keys import (
    MalformedAgentToken,
    generate_agent_token,
    hash_agent_secret,
    key_prefix,
    parse_agent_token,
    verify_agent_secret,
)


class TestAgentTokens:
    def test_generated_token_parses_back(self):
        key_id = uuid.uuid4()
        token, secret = generate_agent_token(key_id)

        assert token.startswith(f"aam_{key_id.hex}_")
        assert parse_agent_token(token) == (key_id, secret)

    def test_secret_may_contain_underscores(self):
        key_id = uuid.uuid4()
        token = f"{key_prefix(key_id)}_abc_def_ghi"

        assert parse_agent_token(token) == (key_id, "abc_def_ghi")

    @pytest.mark.parametrize(
        "token",
        [
            "aam",
            "aam_only-two",
            "xyz_0123456789abcdef0123456789abcdef_secret",
            "aam_not-a-uuid_secret",
            f"aam_{uuid.uuid4().hex}_",
        ],
    )
    def test_malformed_tokens(self, token):
        with pytest.raises(MalformedAgentToken):
            parse_agent_token(token)

    @pytest.mark.parametrize(
        "spelling",
        [
            lambda key_id: str(key_id),
            lambda key_id: "{" + key_id.hex + "}",
            lambda key_id: key_id.urn,
            lambda key_id: key_id.hex.upper(),
            lambda key_id: key_id.hex[:-1],
        ],
        ids=["hyphenated", "braced", "urn", "uppercase", "short"],
    )
    def test_only_canonical_key_ids_are_accepted(self, spelling):
        key_id = uuid.UUID("0123456789abcdef0123456789abcdef")

        with pytest.raises(MalformedAgentToken):
            parse_agent_token(f"aam_{spelling(key_id)}_secret")

    def test_prefix_is_not_secret(self):
        key_id = uuid.uuid4()
        token, secret = generate_agent_token(key_id)

        assert secret not in key_prefix(key_id)
        assert token.startswith(key_prefix(key_id))


class TestSecretHashing:
    def test_hash_is_sha256_hex(self):
        digest = hash_agent_secret("s3cret")

        assert len(digest) == 64
        assert digest != "s3cret"

    def test_verify(self):
        stored = hash_agent_secret("s3cret")

        assert verify_agent_secret("s3cret", stored) is True
        assert verify_agent_secret("s3cret!", stored) is False
