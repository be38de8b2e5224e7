# backend/slotbook/routers/availability.py
"""
Availability API endpoints.

GET /availability/check  - Caller-supplied times on one date
GET /availability/day    - Offered slots of one date with availability
GET /availability/slots  - Only the bookable slots of one date
GET /availability/batch  - Every date of a range (max 62 days)

Upstream calendar failures never fail these endpoints: affected calendars
are listed in `upstream_errors` and contribute no events.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from ..context import AppContext, get_context
from ..errors import InvalidDateFormat, RangeTooLarge
from ..schemas.availability import (
    AvailableSlotsResponse,
    BatchAvailabilityResponse,
    CheckAvailabilityResponse,
    DayAvailabilityRead,
)


router = APIRouter(prefix="/availability", tags=["availability"])


def _split_times(times: list[str]) -> list[str]:
    # Accept both ?times=10:00&times=14:00 and ?times=10:00,14:00
    return [t.strip() for value in times for t in value.split(",") if t.strip()]


@router.get("/check", response_model=CheckAvailabilityResponse)
def check_availability(
    target_date: str = Query(..., alias="date"),
    times: list[str] = Query(...),
    ctx: AppContext = Depends(get_context),
):
    """Availability of specific times on a date."""
    try:
        result = ctx.availability().check_availability(target_date, _split_times(times))
    except InvalidDateFormat as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    data = result.to_dict()
    day = next(iter(data["days"].values()))
    return CheckAvailabilityResponse(
        date=day["date"],
        slots=day["slots"],
        upstream_errors=data["upstream_errors"],
    )


@router.get("/day", response_model=DayAvailabilityRead)
def get_day_availability(
    target_date: str = Query(..., alias="date"),
    ctx: AppContext = Depends(get_context),
):
    """Offered slots of a date and whether each is free."""
    try:
        day, errors = ctx.availability().day_availability(target_date)
    except InvalidDateFormat as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    data = day.to_dict()
    if errors and not data.get("error"):
        data["error"] = "; ".join(e.message for e in errors)
    return data


@router.get("/slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    target_date: str = Query(..., alias="date"),
    ctx: AppContext = Depends(get_context),
):
    """Bookable slots of a date, chronological."""
    service = ctx.availability()
    try:
        slots, errors = service.available_time_slots(target_date)
    except InvalidDateFormat as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    return AvailableSlotsResponse(
        date=target_date,
        slots=slots,
        upstream_errors=[e.to_dict() for e in errors],
    )


@router.get("/batch", response_model=BatchAvailabilityResponse)
def get_batch_availability(
    start_date: str,
    end_date: str,
    ctx: AppContext = Depends(get_context),
):
    """Availability for every date in [start_date, end_date]."""
    try:
        result = ctx.availability().batch_availability(start_date, end_date)
    except (InvalidDateFormat, RangeTooLarge) as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    data = result.to_dict()
    return BatchAvailabilityResponse(
        start_date=start_date,
        end_date=end_date,
        days=data["days"],
        upstream_errors=data["upstream_errors"],
    )
