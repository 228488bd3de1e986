"""
ReleaseDiff — Comparison result contract.

Every request returns a ComparisonResult with full traceability:
step timings, warnings, and the grouped change set.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field

from releasediff.models.changes import ArtifactChangesGroup
from releasediff.models.request import RangeType


class ComparisonState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    RANGE_RESOLVED = "RANGE_RESOLVED"
    CHANGES_COLLECTED = "CHANGES_COLLECTED"
    SERVICES_RESOLVED = "SERVICES_RESOLVED"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class StepTiming(BaseModel):
    step: str
    duration_ms: int
    status: str = "ok"  # ok | skipped | failed
    detail: str = ""


class ComparisonResult(BaseModel):
    """Complete output contract for every change-set request."""

    job_id: str
    range_type: RangeType
    groups: list[ArtifactChangesGroup] = Field(default_factory=list)
    total_changes: int = 0
    included_work_item_ids: list[int] = Field(default_factory=list)
    timings: list[StepTiming] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
