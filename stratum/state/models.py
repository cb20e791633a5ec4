"""
Stratum State - Record model.

A StateRecord is what the last successful apply of a node left behind:
its resolved inputs (secrets as digests), provider outputs, and the ids it
depended on at that time.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stratum.core.exceptions import StateCorruptionError

# Bump when the persisted layout changes; older documents are migrated on read.
FORMAT_VERSION = 1


class StateRecord(BaseModel):
    """Last-applied snapshot of one node."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    format_version: int = Field(default=FORMAT_VERSION, ge=1)
    node_id: str = Field(min_length=1)
    kind: str = Field(min_length=1)
    inputs: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    version: int = Field(default=1, ge=1, description="Incremented on every successful apply")

    @property
    def resource_id(self) -> str | None:
        """Remote identifier assigned by the provider."""
        value = self.outputs.get("id")
        return str(value) if value is not None else None

    def to_document(self) -> dict[str, Any]:
        """JSON-safe mapping for persistence."""
        return self.model_dump(mode="json")


def parse_record(node_id: str, document: Any) -> StateRecord:
    """
    Validate a persisted document.

    Raises:
        StateCorruptionError: Invalid schema, unknown future format, or a
            record stored under the wrong id
    """
    if not isinstance(document, dict):
        raise StateCorruptionError(node_id, "document is not a mapping")

    version = document.get("format_version")
    if isinstance(version, int) and version > FORMAT_VERSION:
        raise StateCorruptionError(
            node_id, f"format version {version} is newer than supported {FORMAT_VERSION}"
        )

    try:
        record = StateRecord.model_validate(document)
    except ValidationError as e:
        raise StateCorruptionError(node_id, f"schema validation failed: {e.error_count()} errors") from e

    if record.node_id != node_id:
        raise StateCorruptionError(node_id, f"stored under the id of '{record.node_id}'")
    return record
