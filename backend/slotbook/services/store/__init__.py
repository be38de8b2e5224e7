from .base import TabularStore
from .customers import CustomerService
from .indexes import BookingIndex, CustomerIndex
from .sheets_store import SheetsTabularStore
from .sql_store import SqlTabularStore

__all__ = [
    "TabularStore",
    "CustomerService",
    "BookingIndex",
    "CustomerIndex",
    "SheetsTabularStore",
    "SqlTabularStore",
]
