"""Measurement model produced by parsers and consumed by accumulators."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Measurement:
    name: str
    tags: dict[str, str] = field(default_factory=dict)
    fields: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None


def measurement_to_dict(m: Measurement) -> dict[str, Any]:
    """Convert a Measurement to a JSON-friendly dict."""
    return {
        "name": m.name,
        "tags": dict(m.tags),
        "fields": dict(m.fields),
        "timestamp": m.timestamp.isoformat() if m.timestamp else None,
    }
