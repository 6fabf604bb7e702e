# Directory Integrations Package
from .base import (
    BaseDirectoryClient,
    NormalizedCustomer,
    CustomerPage,
    CheckInPayload,
    CheckInReceipt,
)
from .posabit import PosabitClient, get_client_for_venue

__all__ = [
    "BaseDirectoryClient",
    "NormalizedCustomer",
    "CustomerPage",
    "CheckInPayload",
    "CheckInReceipt",
    "PosabitClient",
    "get_client_for_venue",
]
