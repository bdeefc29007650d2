"""
Pydantic models for repair proposals.

Repairs are proposed, never applied: the host reviews and persists them
through its own audited write path.
"""

from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class RepairKind(str, Enum):
    """What a proposal changes."""
    SHIFT_REASSIGNMENT = "shift_reassignment"
    TIMESTAMP_CORRECTION = "timestamp_correction"


class RepairAction(str, Enum):
    """How the proposal should be applied."""
    ASSIGN_SHIFT = "assign_shift"
    REPLACE_SHIFT = "replace_shift"
    NORMALIZE_FORMAT = "normalize_format"
    CLAMP_TO_SHIFT = "clamp_to_shift"
    MANUAL_REVIEW = "manual_review"


class RepairProposal(BaseModel):
    """A single reviewable correction to one stored event."""

    event_id: Optional[int] = Field(None, description="Event to correct")
    asset_id: int
    kind: RepairKind
    action: RepairAction
    current_shift_id: Optional[int] = None
    proposed_shift_id: Optional[int] = None
    current_timestamp: Optional[str] = Field(
        None, description="Stored timestamp text"
    )
    proposed_timestamp: Optional[datetime] = Field(
        None, description="None when the value must be supplied by a reviewer"
    )
    bound_start: Optional[datetime] = Field(
        None, description="Earliest acceptable value for manual review"
    )
    bound_end: Optional[datetime] = Field(
        None, description="Latest acceptable value for manual review"
    )
    reason: str
