from .assets import AssetRecord
from .bookings import BookingHeader, RefCodeSequence
from .ledger import LedgerEntry
from .events import OutboxEvent

__all__ = [
    'AssetRecord',
    'BookingHeader', 'RefCodeSequence',
    'LedgerEntry',
    'OutboxEvent',
]
