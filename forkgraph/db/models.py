"""Dataclass models representing registry rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

PROJECT_STATUSES = ("draft", "minted", "listed", "sold")


@dataclass
class Project:
    id: str
    name: str
    description: Optional[str]
    creator: str
    owner: str
    status: str
    data_cid: Optional[str]
    metadata_cid: Optional[str]
    derived_from: Optional[str]
    created_at: int
    updated_at: int

    @property
    def is_derived(self) -> bool:
        return self.derived_from is not None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["is_derived"] = self.is_derived
        return out


@dataclass
class Snapshot:
    project_id: str
    version: int
    snapshot: dict[str, Any]
    created_at: int
