"""Tests for secret redaction helpers."""

from __future__ import annotations

from stratum.graph import Secret
from stratum.utils.security import (
    REDACTED,
    is_sensitive_key,
    redact_sensitive_info,
    register_secret,
    secret_digest,
)


class TestRedaction:
    """Tests for redact_sensitive_info."""

    def test_registered_secret(self):
        """Test registered values are removed anywhere in the text."""
        register_secret("hunter2-pass")
        assert redact_sensitive_info("connecting with hunter2-pass now") == f"connecting with {REDACTED} now"

    def test_secret_wrapper_registers(self):
        """Test creating a Secret registers its value."""
        Secret("wrapped-value")
        assert "wrapped-value" not in redact_sensitive_info("value=wrapped-value")

    def test_short_values_not_registered(self):
        """Test very short secrets are not registered."""
        register_secret("ab")
        assert redact_sensitive_info("abc") == "abc"

    def test_key_value(self):
        """Test key=value pairs with sensitive keys."""
        assert redact_sensitive_info("password=topsecret user=admin") == f"password={REDACTED} user=admin"

    def test_json_pair(self):
        """Test JSON style pairs with sensitive keys."""
        text = '{"dbPassword": "topsecret", "engine": "mysql"}'
        assert redact_sensitive_info(text) == f'{{"dbPassword": "{REDACTED}", "engine": "mysql"}}'

    def test_digest_kept(self):
        """Test digests are not redacted."""
        digest = secret_digest("whatever")
        text = f'{{"password": "{digest}"}}'
        assert redact_sensitive_info(text) == text

    def test_url_credentials(self):
        """Test credentials in connection strings."""
        assert redact_sensitive_info("mysql://admin:pa55word@db:3306") == f"mysql://admin:{REDACTED}@db:3306"

    def test_empty(self):
        """Test empty input."""
        assert redact_sensitive_info("") == ""


def test_secret_digest_stable():
    """Test digests are deterministic and prefixed."""
    assert secret_digest("abc") == secret_digest("abc")
    assert secret_digest("abc").startswith("sha256:")
    assert secret_digest("abc") != secret_digest("abd")


def test_is_sensitive_key():
    """Test sensitive attribute names."""
    assert is_sensitive_key("password")
    assert is_sensitive_key("masterUserPassword")
    assert is_sensitive_key("api-key")
    assert not is_sensitive_key("instanceClass")
