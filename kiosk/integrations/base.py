"""
Base Directory Client - Abstract base class for remote customer directories
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class NormalizedCustomer:
    """
    Normalized customer structure that every directory maps to
    """
    remote_id: int
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    loyalty_member: bool = False

    # Raw data
    raw_payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CustomerPage:
    """
    One page of the directory. Pages are 1-indexed.
    """
    records: List[NormalizedCustomer]
    total_records: int
    total_pages: int
    current_page: int = 1


@dataclass
class CheckInPayload:
    """
    What gets sent to the remote queue for one check-in
    """
    name: str
    phone: Optional[str] = None
    customer_ref: Optional[int] = None
    method: str = "walk_in"
    idempotency_key: Optional[str] = None


@dataclass
class CheckInReceipt:
    """
    Remote confirmation of a queued check-in
    """
    queue_id: Optional[int] = None
    customer_ref: Optional[int] = None
    name: str = ""
    state: str = ""
    raw_payload: Dict[str, Any] = field(default_factory=dict)


class BaseDirectoryClient(ABC):
    """
    Abstract base class for remote customer directory integrations.

    Implementations raise TransientRemoteError on network/HTTP failure;
    callers decide whether to defer, skip or abort.
    """
    PLATFORM_NAME: str = "base"

    # ========== Customers ==========

    @abstractmethod
    async def fetch_customers(
        self,
        page: int = 1,
        per_page: int = 100,
        updated_since: Optional[datetime] = None,
    ) -> CustomerPage:
        """
        Get one page of customers, optionally only those updated since a checkpoint
        """
        pass

    @abstractmethod
    async def create_customer(self, fields: Dict[str, Any]) -> NormalizedCustomer:
        pass

    @abstractmethod
    async def update_customer(self, remote_id: int, fields: Dict[str, Any]) -> NormalizedCustomer:
        pass

    @abstractmethod
    def normalize_customer(self, raw_customer: Dict[str, Any]) -> NormalizedCustomer:
        """
        Convert directory-specific customer format to normalized format
        """
        pass

    # ========== Queue ==========

    @abstractmethod
    async def submit_check_in(self, payload: CheckInPayload) -> CheckInReceipt:
        """
        Add a customer to the venue's check-in queue
        """
        pass

    async def get_queue(self) -> List[Dict[str, Any]]:
        """Current remote queue (optional implementation)"""
        raise NotImplementedError("Queue listing not implemented for this directory")

    # ========== Utilities ==========

    def _log_api_call(self, method: str, endpoint: str, status_code: int):
        """Log API call for debugging"""
        logger.info(f"[{self.PLATFORM_NAME}] {method} {endpoint} -> {status_code}")
