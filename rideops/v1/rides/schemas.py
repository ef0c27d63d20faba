from uuid import UUID

from pydantic import BaseModel, Field


class RideStatusUpdate(BaseModel):
    """Schema for a ride status write."""

    status: str = Field(
        ...,
        description="New status (scheduled, active, in_progress, completed, cancelled)",
    )


class RideStatusChangeResponse(BaseModel):
    """Schema describing what a status write did."""

    ride_id: UUID
    previous_status: str | None
    new_status: str
    completion_fired: bool
    staged_task_ids: list[UUID]
