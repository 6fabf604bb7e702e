from . import customer_cache, settings_service, checkin_service, sync_service
from .sync_service import CustomerSyncEngine, SyncPhase
from .sync_events import SyncEventBroker, get_event_broker

__all__ = [
    "customer_cache",
    "settings_service",
    "checkin_service",
    "sync_service",
    "CustomerSyncEngine",
    "SyncPhase",
    "SyncEventBroker",
    "get_event_broker",
]
