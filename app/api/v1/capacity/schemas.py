"""Capacity schemas."""

from pydantic import BaseModel


class BatchCapacity(BaseModel):
    batch_id: str
    max_seats: int
    occupied_seats: int
    previous_occupied_seats: int
    available_seats: int
    # occupied > max can only come from racing creates; reported, never auto-resolved
    overcommitted: bool


class BatchCapacityCheck(BaseModel):
    """Cached value next to a fresh count, without writing anything."""

    batch_id: str
    max_seats: int
    cached_occupied_seats: int
    measured_occupied_seats: int
    in_sync: bool
