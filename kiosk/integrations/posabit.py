"""
POSaBIT Venue API Client
Base URL: https://app.posabit.com/api/v3
"""
import base64
import httpx
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from kiosk.core.config import settings
from kiosk.core.exceptions import TransientRemoteError
from .base import (
    BaseDirectoryClient,
    NormalizedCustomer,
    CustomerPage,
    CheckInPayload,
    CheckInReceipt,
)

logger = logging.getLogger(__name__)


class PosabitClient(BaseDirectoryClient):
    """
    POSaBIT Venue API Client

    Uses HTTP Basic auth built from the integrator token and the venue token.
    """
    PLATFORM_NAME = "posabit"

    GENDER_MAP = {
        "M": "male",
        "F": "female",
        "X": "other",
    }

    def __init__(
        self,
        integrator_token: str,
        venue_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        lookback_days: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize POSaBIT client

        Args:
            integrator_token: integrator credential shared by all venues
            venue_token: credential of the selected venue
            transport: optional httpx transport (tests use httpx.MockTransport)
        """
        self.integrator_token = integrator_token
        self.venue_token = venue_token
        self.base_url = (base_url or settings.POSABIT_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.lookback_days = lookback_days or settings.FULL_SYNC_LOOKBACK_DAYS
        self._transport = transport

        credentials = f"{integrator_token}:{venue_token}".encode("utf-8")
        self._auth_header = f"Basic {base64.b64encode(credentials).decode('ascii')}"

    def _build_headers(self) -> Dict[str, str]:
        """Build request headers with Basic auth"""
        return {
            "Authorization": self._auth_header,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = self._build_headers()
        if extra_headers:
            headers.update(extra_headers)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, self._build_url(endpoint), headers=headers, params=params, json=json
                )
        except httpx.RequestError as e:
            logger.error(f"POSaBIT request error on {method} {endpoint}: {e}")
            raise TransientRemoteError(f"{method} {endpoint} failed: {e}") from e

        self._log_api_call(method, endpoint, response.status_code)

        if response.status_code >= 400:
            raise TransientRemoteError(
                f"{method} {endpoint} -> {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransientRemoteError(f"{method} {endpoint} returned invalid JSON") from e

    # ========== Customers ==========

    async def fetch_customers(
        self,
        page: int = 1,
        per_page: int = 100,
        updated_since: Optional[datetime] = None,
    ) -> CustomerPage:
        """
        Get one page of venue customers
        API: GET /venue/customers

        POSaBIT requires a start_date/end_date window; full syncs use the
        configured lookback, incremental syncs start at the checkpoint day.
        """
        now = datetime.now(timezone.utc)
        start = updated_since or (now - timedelta(days=self.lookback_days))

        params = {
            "page": page,
            "per_page": per_page,
            "start_date": start.strftime("%Y-%m-%d"),
            "end_date": now.strftime("%Y-%m-%d"),
        }
        if updated_since:
            params["q[updated_at_gt]"] = updated_since.isoformat()

        data = await self._request("GET", "venue/customers", params=params)

        # Items come wrapped as {"customer": {...}}
        records = [
            self.normalize_customer(item.get("customer", item))
            for item in data.get("customers", [])
        ]

        return CustomerPage(
            records=records,
            total_records=int(data.get("total_records", len(records))),
            total_pages=int(data.get("total_pages", 1)),
            current_page=int(data.get("current_page", page)),
        )

    async def create_customer(self, fields: Dict[str, Any]) -> NormalizedCustomer:
        """
        Create a new customer
        API: POST /venue/customers
        """
        customer = {
            "first_name": fields.get("first_name", ""),
            "last_name": fields.get("last_name") or "",
            "telephone": fields.get("telephone"),
            "loyalty_member": bool(fields.get("loyalty_member", False)),
            "marketing_opt_in": bool(fields.get("marketing_opt_in", fields.get("loyalty_member", False))),
        }
        if fields.get("email"):
            customer["email"] = fields["email"]
        customer.update(self._demographics(fields))

        data = await self._request("POST", "venue/customers", json={"customer": customer})
        return self.normalize_customer(data.get("customer", data))

    async def update_customer(self, remote_id: int, fields: Dict[str, Any]) -> NormalizedCustomer:
        """
        Update an existing customer (e.g. to enable loyalty)
        API: PUT /venue/customers/{id}
        """
        customer = {}
        for key in ("first_name", "last_name", "telephone", "email", "loyalty_member", "marketing_opt_in"):
            if fields.get(key) is not None:
                customer[key] = fields[key]
        customer.update(self._demographics(fields))

        data = await self._request("PUT", f"venue/customers/{remote_id}", json={"customer": customer})
        return self.normalize_customer(data.get("customer", data))

    def _demographics(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Map ID-scan demographics to POSaBIT field names"""
        out = {}
        if fields.get("address1"):
            out["address_1"] = fields["address1"]
        if fields.get("city"):
            out["city"] = fields["city"]
        if fields.get("state"):
            out["state"] = fields["state"]
        if fields.get("zip_code"):
            out["zip_code"] = fields["zip_code"]

        # MMDDYYYY -> YYYY-MM-DD
        dob = fields.get("date_of_birth")
        if dob and len(dob) == 8 and dob.isdigit():
            out["date_of_birth"] = f"{dob[4:8]}-{dob[0:2]}-{dob[2:4]}"

        gender = fields.get("gender")
        if gender:
            out["gender"] = self.GENDER_MAP.get(gender.upper(), "other")
        return out

    def normalize_customer(self, raw_customer: Dict[str, Any]) -> NormalizedCustomer:
        """Convert POSaBIT customer to normalized format"""
        return NormalizedCustomer(
            remote_id=int(raw_customer["id"]),
            first_name=raw_customer.get("first_name") or "",
            last_name=raw_customer.get("last_name") or "",
            phone=raw_customer.get("telephone") or None,
            email=raw_customer.get("email") or None,
            loyalty_member=bool(raw_customer.get("loyalty_member", False)),
            raw_payload=raw_customer,
        )

    # ========== Queue ==========

    async def submit_check_in(self, payload: CheckInPayload) -> CheckInReceipt:
        """
        Add a customer to the venue queue
        API: POST /venue/customer_queues
        """
        body = {
            "customer_queue": {
                "source": "walk_in",
                "name": payload.name,
                "telephone": payload.phone,
                "customer_id": payload.customer_ref,
            }
        }
        extra_headers = {}
        if payload.idempotency_key:
            extra_headers["Idempotency-Key"] = payload.idempotency_key

        data = await self._request("POST", "venue/customer_queues", json=body, extra_headers=extra_headers)
        item = data.get("customer_queue", data)

        return CheckInReceipt(
            queue_id=item.get("customer_queue_id"),
            customer_ref=item.get("customer_id"),
            name=item.get("name", payload.name),
            state=item.get("aasm_state", ""),
            raw_payload=item,
        )

    async def get_queue(self) -> List[Dict[str, Any]]:
        """
        Get the current customer queue
        API: GET /venue/customer_queues
        """
        data = await self._request("GET", "venue/customer_queues")
        return data.get("customer_queues", [])


def get_client_for_venue(venue) -> Optional[PosabitClient]:
    """Build a client for a venue, or None when credentials are missing"""
    if venue is None or not venue.is_configured:
        return None
    return PosabitClient(settings.INTEGRATOR_TOKEN, venue.token)
