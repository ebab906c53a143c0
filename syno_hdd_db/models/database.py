from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field


class DatabasePaths(BaseModel):
    """Active and pending compatibility database of the running platform."""

    active: Path = Field(..., description="Live database, <model>_host[_v<N>].db")
    pending: Path = Field(..., description="Staged replacement, same name + .new")

    def files(self) -> Tuple[Path, Path]:
        # active first, then pending; this is also the reconcile order
        return self.active, self.pending


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


class ReconcileOutcome(str, Enum):
    ADDED = "added"
    ALREADY_EXISTS = "already_exists"


class EditCounter(BaseModel):
    """Number of models inserted per database file during one run."""

    counts: Dict[str, int] = Field(default_factory=dict)

    def increment(self, path: Path) -> None:
        key = str(path)
        self.counts[key] = self.counts.get(key, 0) + 1

    def get(self, path: Path) -> int:
        return self.counts.get(str(path), 0)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class DatabaseStatus(BaseModel):
    """Read-only view on one database file against the current inventory."""

    path: str = Field(..., description="Absolute path of the database file")
    exists: bool = Field(..., description="True if the file is present.")
    backup_exists: bool = Field(
        ...,
        description="True if <path>.bak is present.",
    )
    present: List[str] = Field(
        default_factory=list,
        description="Inventory models that already have an entry.",
    )
    missing: List[str] = Field(
        default_factory=list,
        description="Inventory models a run would add.",
    )
