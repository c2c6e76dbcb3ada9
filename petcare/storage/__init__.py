from petcare.storage.base import BookingStore, StorageError
from petcare.storage.memory_store import InMemoryBookingStore

__all__ = [
    "BookingStore",
    "InMemoryBookingStore",
    "StorageError",
]
