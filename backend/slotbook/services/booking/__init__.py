from .commit import BookingCommitter, BookingRequest, CommitResult, CommitState
from .lock import LocalBookingLock, RedisBookingLock

__all__ = [
    "BookingCommitter",
    "BookingRequest",
    "CommitResult",
    "CommitState",
    "LocalBookingLock",
    "RedisBookingLock",
]
