"""
Stratum Graph - Declaration loader.

Reads a stack file:

    name: web
    resources:
      vpc:
        kind: aws:ec2/Vpc
        properties:
          cidrBlock: 10.0.0.0/16
      igw:
        kind: aws:ec2/InternetGateway
        properties:
          vpcId: ${vpc.id}
        dependsOn: [vpc]
    data:
      zones:
        kind: aws:index/getAvailabilityZones
        properties:
          state: available
    outputs:
      vpcId: ${vpc.id}

Entries under ``data`` are data sources: read through the provider and
referenced like resources (``${zones.names.0}``), never created or
recorded in state.

``type`` is accepted for ``kind`` and ``options.dependsOn`` for
``dependsOn``; dependency entries may be written ``name`` or ``${name}``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from stratum.core.exceptions import DeclarationError
from stratum.graph.models import ResourceDeclaration
from stratum.graph.references import parse_value

_BARE_REF_RE = re.compile(r"^\$\{([^}.]+)\}$")

_RESOURCE_KEYS = {"kind", "type", "properties", "dependsOn", "options"}


@dataclass
class Stack:
    """Parsed stack file."""

    name: str
    # Resources in file order, then data sources (flagged ``data=True``)
    resources: list[ResourceDeclaration] = field(default_factory=list)
    outputs: dict[str, Any] = field(default_factory=dict)


def _dependency_names(name: str, raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise DeclarationError(f"Resource '{name}': dependsOn must be a name or a list")
    names = []
    for item in raw:
        if not isinstance(item, str):
            raise DeclarationError(f"Resource '{name}': dependsOn entries must be strings")
        match = _BARE_REF_RE.match(item)
        names.append(match.group(1) if match else item)
    return names


def _parse_resource(name: str, spec: Any, data: bool = False) -> ResourceDeclaration:
    if not isinstance(spec, dict):
        raise DeclarationError(f"Resource '{name}' must be a mapping")
    unknown = set(spec) - _RESOURCE_KEYS
    if unknown:
        raise DeclarationError(
            f"Resource '{name}' has unknown keys: {', '.join(sorted(unknown))}",
            {"name": name},
        )

    kind = spec.get("kind", spec.get("type"))
    if not isinstance(kind, str) or not kind:
        raise DeclarationError(f"Resource '{name}' has no kind")

    properties = spec.get("properties") or {}
    if not isinstance(properties, dict):
        raise DeclarationError(f"Resource '{name}': properties must be a mapping")

    options = spec.get("options") or {}
    if not isinstance(options, dict):
        raise DeclarationError(f"Resource '{name}': options must be a mapping")
    depends_on = _dependency_names(name, spec.get("dependsOn"))
    depends_on += _dependency_names(name, options.get("dependsOn"))

    return ResourceDeclaration(
        name=str(name),
        kind=kind,
        properties=parse_value(properties),
        depends_on=list(dict.fromkeys(depends_on)),
        data=data,
    )


def parse_stack(data: Any, default_name: str = "stack") -> Stack:
    """
    Parse a stack document already loaded from YAML.

    Raises:
        DeclarationError: If the document structure is invalid
    """
    if not isinstance(data, dict):
        raise DeclarationError("Stack document must be a mapping")

    resources = data.get("resources") or {}
    if not isinstance(resources, dict):
        raise DeclarationError("'resources' must map names to resource definitions")

    sources = data.get("data") or {}
    if not isinstance(sources, dict):
        raise DeclarationError("'data' must map names to data source definitions")

    outputs = data.get("outputs") or {}
    if not isinstance(outputs, dict):
        raise DeclarationError("'outputs' must be a mapping")

    return Stack(
        name=str(data.get("name") or default_name),
        resources=[_parse_resource(name, spec) for name, spec in resources.items()]
        + [_parse_resource(name, spec, data=True) for name, spec in sources.items()],
        outputs={str(k): parse_value(v) for k, v in outputs.items()},
    )


def load_stack(path: Path) -> Stack:
    """
    Load a stack file from disk.

    Raises:
        DeclarationError: Unreadable file, invalid YAML, or invalid structure
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise DeclarationError(f"Cannot read stack file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise DeclarationError(f"Invalid YAML in stack file {path}: {e}") from e

    stack = parse_stack(data, default_name=path.stem)
    logger.debug(f"Loaded stack '{stack.name}' from {path}: {len(stack.resources)} resources")
    return stack
