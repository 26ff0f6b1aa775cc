"""Tabular views of report records for printing and downstream tooling."""

from __future__ import annotations

import enum
from dataclasses import fields, is_dataclass
from typing import Any

import pandas as pd


def _flatten(record: Any) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, enum.Enum):
            row[f.name] = value.value
        elif isinstance(value, (list, tuple, set)):
            # Nested records are summarised; drill-down stays on the objects
            row[f"{f.name}_count"] = len(value)
        elif isinstance(value, dict):
            row[f.name] = ", ".join(f"{k}: {v}" for k, v in value.items())
        else:
            row[f.name] = value
    return row


def to_frame(records: list[Any]) -> pd.DataFrame:
    """One row per dataclass record; an empty list gives an empty frame."""
    rows = [_flatten(r) for r in records if is_dataclass(r)]
    return pd.DataFrame(rows)
