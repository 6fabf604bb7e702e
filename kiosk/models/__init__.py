from .base import utcnow
from .customer import CustomerRecord
from .outbox import OutboxEntry, CheckInMethod
from .sync import VenueSyncState, SyncJob, SyncJobType, SyncJobStatus
from .setting import KioskSetting, SELECTED_VENUE_KEY

__all__ = [
    # Base
    "utcnow",
    # Customer
    "CustomerRecord",
    # Outbox
    "OutboxEntry", "CheckInMethod",
    # Sync
    "VenueSyncState", "SyncJob", "SyncJobType", "SyncJobStatus",
    # Settings
    "KioskSetting", "SELECTED_VENUE_KEY",
]
