"""Pydantic schemas for data shift audit findings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FindingKind(str, Enum):
    DELETED_LICENSE = "deleted_license"
    DELETED_TRANSACTION = "deleted_transaction"
    LATE_TRANSACTION = "late_transaction"
    ALTERED_TRANSACTION = "altered_transaction"
    ALTERED_LICENSE = "altered_license"


class FindingSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class DataShiftFinding(BaseModel):
    """One suspicious difference between marketplace snapshots."""

    kind: FindingKind
    severity: FindingSeverity
    record_id: str
    snapshot_timestamp: datetime | None = None
    details: dict[str, Any] = Field(default_factory=dict)
