# Pydantic Schemas Package
from .customer import CustomerResponse, LookupResponse, CustomerCreate, CustomerUpdate, RemoteCustomerResponse
from .checkin import CheckInCreate, CheckInResponse, OutboxEntryResponse, ReplayResponse
from .sync import SyncProgressOut, SyncStatusResponse, SyncRunResponse, SyncJobItem, DbInfoResponse
from .venue import VenueResponse, VenueSelect

__all__ = [
    "CustomerResponse", "LookupResponse", "CustomerCreate", "CustomerUpdate", "RemoteCustomerResponse",
    "CheckInCreate", "CheckInResponse", "OutboxEntryResponse", "ReplayResponse",
    "SyncProgressOut", "SyncStatusResponse", "SyncRunResponse", "SyncJobItem", "DbInfoResponse",
    "VenueResponse", "VenueSelect",
]
