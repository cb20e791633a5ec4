"""
Stratum Graph - Reference values.

Declared attribute values are plain data plus three tagged markers:

- ``Reference``: another node's output, known only after that node applies
- ``Interpolation``: a string template mixing literal text and references
- ``Secret``: an opaque sensitive value, never logged or stored in plaintext

In YAML a reference is the whole string ``"${node.field}"``; a string that
embeds ``${...}`` among other text is an interpolation; ``$${`` escapes a
literal ``${``; a single-key mapping ``{secret: value}`` is a secret.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from stratum.utils.security import register_secret, secret_digest

NODE_ID_PATTERN = r"[A-Za-z0-9_][A-Za-z0-9_-]*"
_FIELD_PATTERN = r"[A-Za-z0-9_][A-Za-z0-9_.-]*"
_REF_RE = re.compile(rf"\$\{{({NODE_ID_PATTERN})\.({_FIELD_PATTERN})\}}")
_ESCAPE = "$${"


@dataclass(frozen=True)
class Reference:
    """Pending value: output ``field`` of node ``node_id``."""

    node_id: str
    field: str

    def __str__(self) -> str:
        return "${" + f"{self.node_id}.{self.field}" + "}"


@dataclass(frozen=True)
class Interpolation:
    """String template made of literal text and references."""

    parts: tuple[str | Reference, ...]

    def __str__(self) -> str:
        return "".join(p.replace("${", _ESCAPE) if isinstance(p, str) else str(p) for p in self.parts)


class Secret:
    """Sensitive value. Equality and hashing go through the digest."""

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str):
            value = str(value)
        self._value = value
        register_secret(value)

    def reveal(self) -> str:
        return self._value

    @property
    def digest(self) -> str:
        return secret_digest(self._value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Secret) and other.digest == self.digest

    def __hash__(self) -> int:
        return hash(self.digest)

    def __repr__(self) -> str:
        return "Secret(********)"


class _Unknown:
    """Value of a reference whose upstream has not been applied yet."""

    _instance: _Unknown | None = None

    def __new__(cls) -> _Unknown:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"


UNKNOWN = _Unknown()


def ref(path: str) -> Reference:
    """Build a Reference from ``"node.field"``."""
    node_id, sep, field = path.partition(".")
    if not sep or not node_id or not field:
        raise ValueError(f"Reference must look like 'node.field', got {path!r}")
    return Reference(node_id, field)


def parse_string(text: str) -> str | Reference | Interpolation:
    """Turn a declared string into a literal, Reference or Interpolation."""
    if "${" not in text:
        return text

    parts: list[str | Reference] = []
    literal = ""
    pos = 0
    while pos < len(text):
        if text.startswith(_ESCAPE, pos):
            literal += "${"
            pos += len(_ESCAPE)
            continue
        match = _REF_RE.match(text, pos)
        if match:
            if literal:
                parts.append(literal)
                literal = ""
            parts.append(Reference(match.group(1), match.group(2)))
            pos = match.end()
            continue
        literal += text[pos]
        pos += 1
    if literal:
        parts.append(literal)

    if len(parts) == 1 and isinstance(parts[0], Reference):
        return parts[0]
    if not any(isinstance(p, Reference) for p in parts):
        return "".join(parts)  # type: ignore[arg-type]
    return Interpolation(tuple(parts))


def parse_value(value: Any) -> Any:
    """Recursively convert declared YAML data into attribute values."""
    if isinstance(value, str):
        return parse_string(value)
    if isinstance(value, dict):
        if set(value) == {"secret"}:
            return Secret(value["secret"])
        return {k: parse_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [parse_value(v) for v in value]
    return value


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested anywhere in ``value``."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Interpolation):
        for part in value.parts:
            if isinstance(part, Reference):
                yield part
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_references(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_references(v)


def lookup_field(outputs: dict[str, Any], field: str) -> Any:
    """
    Read a possibly dotted field path from an outputs mapping.

    ``"endpoint"`` reads a top-level key; ``"zones.0"`` indexes a list.

    Raises:
        KeyError: If any path segment is missing
    """
    current: Any = outputs
    for segment in field.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise KeyError(field)
    return current


def resolve(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Replace references using ``lookup``; secrets are kept wrapped.

    ``lookup`` may return UNKNOWN; an interpolation containing an unknown
    part is itself UNKNOWN.
    """
    if isinstance(value, Reference):
        return lookup(value)
    if isinstance(value, Interpolation):
        pieces: list[str] = []
        for part in value.parts:
            if isinstance(part, Reference):
                resolved = lookup(part)
                if resolved is UNKNOWN:
                    return UNKNOWN
                pieces.append(resolved.reveal() if isinstance(resolved, Secret) else str(resolved))
            else:
                pieces.append(part)
        return "".join(pieces)
    if isinstance(value, dict):
        return {k: resolve(v, lookup) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve(v, lookup) for v in value]
    return value


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False


def reveal(value: Any) -> Any:
    """Plaintext view of resolved values, handed to providers only."""
    if isinstance(value, Secret):
        return value.reveal()
    if isinstance(value, dict):
        return {k: reveal(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [reveal(v) for v in value]
    return value


def to_snapshot(value: Any) -> Any:
    """JSON-safe view of resolved values with secrets replaced by digests."""
    if isinstance(value, Secret):
        return value.digest
    if isinstance(value, dict):
        return {str(k): to_snapshot(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_snapshot(v) for v in value]
    return value


def to_display(value: Any) -> Any:
    """Human readable view: references as ``${...}``, secrets masked."""
    if isinstance(value, Secret):
        return "(sensitive)"
    if isinstance(value, (Reference, Interpolation)):
        return str(value)
    if value is UNKNOWN:
        return repr(UNKNOWN)
    if isinstance(value, dict):
        return {k: to_display(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_display(v) for v in value]
    return value
