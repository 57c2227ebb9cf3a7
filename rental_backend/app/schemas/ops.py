"""
Admin ops schemas.
"""

from pydantic import BaseModel
from typing import List


class ScheduleRunResponse(BaseModel):
    """Booking ids touched by one schedule run."""
    started: List[int]
    finish_enabled: List[int]
    skipped: List[int]
    failed_side_effects: List[int]
