"""
Stratum Planner - Attribute diff.
"""

from __future__ import annotations

from typing import Any

from stratum.graph.references import contains_unknown, to_snapshot


def changed_fields(desired: dict[str, Any], recorded: dict[str, Any]) -> list[str]:
    """
    Top-level fields whose desired value differs from the recorded snapshot.

    ``desired`` holds resolved values (secrets wrapped, UNKNOWN where an
    upstream output is not known yet); ``recorded`` is the JSON snapshot of
    the last apply. A field holding an unknown value always counts as
    changed.
    """
    changed = []
    for name in sorted(set(desired) | set(recorded)):
        if name not in desired or name not in recorded:
            changed.append(name)
            continue
        value = desired[name]
        if contains_unknown(value) or to_snapshot(value) != recorded[name]:
            changed.append(name)
    return changed
