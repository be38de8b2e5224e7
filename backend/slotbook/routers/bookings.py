# backend/slotbook/routers/bookings.py

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..context import AppContext, get_context
from ..errors import BookingEngineError, LockTimeout, SlotConflict, UpstreamUnavailable, ValidationError
from ..schemas.bookings import BookingCommitResponse, BookingCreate, BookingRead
from ..services.booking import BookingRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])

RETRY_AFTER_SECONDS = 5


def _status_for(error: BookingEngineError) -> int:
    if isinstance(error, SlotConflict):
        return status.HTTP_409_CONFLICT
    if isinstance(error, (LockTimeout, UpstreamUnavailable)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


@router.post("/", response_model=BookingCommitResponse, status_code=status.HTTP_201_CREATED)
def commit_booking(
    data: BookingCreate,
    ctx: AppContext = Depends(get_context),
):
    request = BookingRequest(**data.model_dump(exclude={"csrf_token"}))
    try:
        result = ctx.committer().commit(request)
    except (ValidationError, LockTimeout, SlotConflict, UpstreamUnavailable) as e:
        body = {
            "success": False,
            "booking_id": None,
            "error": e.message,
            "code": e.code,
            "warnings": [],
        }
        if isinstance(e, ValidationError):
            body["fields"] = e.fields
        if isinstance(e, SlotConflict):
            body["conflicts"] = [c.to_dict() for c in e.conflicts]
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if e.retryable else None
        return JSONResponse(status_code=_status_for(e), content=body, headers=headers)

    return BookingCommitResponse(
        success=True,
        booking_id=result.booking.booking_id,
        warnings=result.warnings,
    )


@router.get("/", response_model=list[BookingRead])
def list_customer_bookings(
    user_id: str,
    ctx: AppContext = Depends(get_context),
):
    """Bookings of one customer, chronological."""
    return [b.to_dict() for b in ctx.customers().bookings_for_user(user_id)]
