# library_attendance/schemas/occupancy.py
from pydantic import BaseModel


class OccupancyOut(BaseModel):
    active_total: int
    active_by_category: dict[str, int]
    daily_capacity: int
    remaining_seats: int
    occupancy_percentage: float
    is_full: bool
    today_visits: int
    today_visits_by_category: dict[str, int]

    class Config:
        from_attributes = True
