"""
Tests for reference values.

Tests:
- Parsing of references, interpolations, escapes and secrets
- Resolution with known and unknown upstream values
- Snapshot and display views of secrets
"""

from __future__ import annotations

import pytest

from stratum.graph.references import (
    UNKNOWN,
    Interpolation,
    Reference,
    Secret,
    contains_unknown,
    iter_references,
    lookup_field,
    parse_string,
    parse_value,
    ref,
    resolve,
    reveal,
    to_display,
    to_snapshot,
)


class TestParsing:
    """Tests for parse_string / parse_value."""

    def test_plain_string(self):
        """Test strings without ${ stay literal."""
        assert parse_string("10.0.0.0/16") == "10.0.0.0/16"

    def test_whole_string_reference(self):
        """Test a whole-string reference becomes a Reference."""
        assert parse_string("${vpc.id}") == Reference("vpc", "id")

    def test_hyphenated_node_id(self):
        """Test node ids may contain hyphens."""
        assert parse_string("${web-subnet-1.id}") == Reference("web-subnet-1", "id")

    def test_interpolation(self):
        """Test embedded references make an interpolation."""
        value = parse_string("http://${my-lb.dnsName}/")
        assert isinstance(value, Interpolation)
        assert value.parts == ("http://", Reference("my-lb", "dnsName"), "/")

    def test_escape(self):
        """Test $${ produces a literal ${."""
        assert parse_string("echo $${HOME}") == "echo ${HOME}"

    def test_malformed_reference_is_literal(self):
        """Test ${...} without a field is left as text."""
        assert parse_string("${vpc}") == "${vpc}"

    def test_secret_mapping(self):
        """Test {secret: value} becomes a Secret."""
        value = parse_value({"password": {"secret": "hunter22"}})
        assert isinstance(value["password"], Secret)
        assert value["password"].reveal() == "hunter22"

    def test_nested_references(self):
        """Test references are found at any depth."""
        value = parse_value(
            {
                "routes": [{"cidrBlock": "0.0.0.0/0", "gatewayId": "${my-igw.id}"}],
                "subnets": ["${a.id}", "${b.id}"],
                "url": "http://${lb.dnsName}/",
            }
        )
        found = {(r.node_id, r.field) for r in iter_references(value)}
        assert found == {("my-igw", "id"), ("a", "id"), ("b", "id"), ("lb", "dnsName")}

    def test_ref_helper(self):
        """Test ref() splits on the first dot."""
        assert ref("db.endpoint.host") == Reference("db", "endpoint.host")
        with pytest.raises(ValueError):
            ref("db")

    def test_reference_str(self):
        """Test references render back to their declared form."""
        assert str(Reference("vpc", "id")) == "${vpc.id}"


class TestResolution:
    """Tests for resolve and lookup_field."""

    def test_lookup_nested_field(self):
        """Test dotted paths index mappings and lists."""
        outputs = {"endpoint": {"host": "db.local"}, "zones": ["a", "b"]}
        assert lookup_field(outputs, "endpoint.host") == "db.local"
        assert lookup_field(outputs, "zones.1") == "b"

    def test_lookup_missing_field(self):
        """Test missing segments raise KeyError."""
        with pytest.raises(KeyError):
            lookup_field({"id": "x"}, "arn")
        with pytest.raises(KeyError):
            lookup_field({"zones": ["a"]}, "zones.3")

    def test_resolve_known(self):
        """Test references and interpolations resolve from upstream outputs."""
        outputs = {"vpc": {"id": "vpc-1"}, "lb": {"dnsName": "lb.example"}}
        value = parse_value({"vpcId": "${vpc.id}", "url": "http://${lb.dnsName}/", "n": 3})
        resolved = resolve(value, lambda r: outputs[r.node_id][r.field])
        assert resolved == {"vpcId": "vpc-1", "url": "http://lb.example/", "n": 3}

    def test_resolve_unknown_interpolation(self):
        """Test an interpolation with an unknown part is unknown."""
        value = parse_value({"url": "http://${lb.dnsName}/", "tags": ["${lb.id}"]})
        resolved = resolve(value, lambda r: UNKNOWN)
        assert resolved["url"] is UNKNOWN
        assert resolved["tags"] == [UNKNOWN]
        assert contains_unknown(resolved)

    def test_resolve_keeps_secrets(self):
        """Test secrets stay wrapped until revealed."""
        value = parse_value({"password": {"secret": "s3cr3t!"}})
        resolved = resolve(value, lambda r: None)
        assert isinstance(resolved["password"], Secret)
        assert reveal(resolved) == {"password": "s3cr3t!"}


class TestSecretViews:
    """Tests for snapshots and display of secrets."""

    def test_snapshot_uses_digest(self):
        """Test snapshots never contain plaintext."""
        snapshot = to_snapshot({"password": Secret("s3cr3t!")})
        assert snapshot["password"].startswith("sha256:")
        assert "s3cr3t!" not in str(snapshot)

    def test_display_masks(self):
        """Test display masks secrets and shows unknowns."""
        shown = to_display({"password": Secret("s3cr3t!"), "id": UNKNOWN, "ref": Reference("a", "id")})
        assert shown == {"password": "(sensitive)", "id": "(known after apply)", "ref": "${a.id}"}

    def test_secret_repr(self):
        """Test repr hides the value."""
        assert "s3cr3t!" not in repr(Secret("s3cr3t!"))

    def test_secret_equality(self):
        """Test secrets compare by value digest."""
        assert Secret("abc123") == Secret("abc123")
        assert Secret("abc123") != Secret("xyz789")
