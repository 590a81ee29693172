# library_attendance/routers/occupancy.py
"""Occupancy — live seat count against the daily capacity."""

from fastapi import APIRouter, Depends

from library_attendance.context import AppContext, get_context
from library_attendance.schemas.occupancy import OccupancyOut

router = APIRouter()


@router.get("/occupancy", response_model=OccupancyOut)
def get_occupancy(ctx: AppContext = Depends(get_context)):
    """Active patrons, breakdown by category, remaining seats and today's visits."""
    snapshot = ctx.accountant.current
    return OccupancyOut(
        active_total=snapshot.active_total,
        active_by_category=snapshot.active_by_category,
        daily_capacity=snapshot.daily_capacity,
        remaining_seats=snapshot.remaining_seats,
        occupancy_percentage=round(snapshot.occupancy_percentage, 1),
        is_full=snapshot.is_full,
        today_visits=snapshot.today_visits,
        today_visits_by_category=snapshot.today_visits_by_category,
    )
