"""Workflow sweep DTOs."""

from typing import Optional

from pydantic import Field

from practice_crm.application.dtos.base import DTO


class WorkflowError(DTO):
    """A per-contact failure collected during a sweep."""

    rule: str
    contact_id: Optional[str] = None
    error: str


class SweepResult(DTO):
    """Aggregate result of one workflow sweep."""

    total_processed: int = 0
    breakdown: dict[str, int] = Field(default_factory=dict)
    errors: list[WorkflowError] = Field(default_factory=list)
    processing_time_ms: int = 0
