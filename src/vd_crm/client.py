"""CRM HTTP client (HighLevel-style API).

One explicitly constructed `httpx.AsyncClient` per process, created in the app
lifespan and injected wherever CRM access is needed. Every call is bounded by
the client timeout. Transport errors and non-2xx responses are raised as
UpstreamUnavailableError; callers decide whether that is fatal (admin catalog
sync) or only logged (downstream notifier).
"""

import logging
from datetime import date
from typing import Any

import httpx

from config.settings import settings
from src.vd_common.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

_SERVICE = "crm"


class CrmClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        location_id: str,
        api_version: str = "2021-07-28",
        business_name: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._location_id = location_id
        self._business_name = business_name
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Version": api_version,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> "CrmClient":
        return cls(
            base_url=settings.CRM_BASE_URL,
            api_key=settings.CRM_API_KEY,
            location_id=settings.CRM_LOCATION_ID,
            api_version=settings.CRM_API_VERSION,
            business_name=settings.CRM_BUSINESS_NAME,
            timeout=settings.CRM_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._http.request(method, path, params=params, json=json)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailableError(
                _SERVICE,
                f"{method} {path} → {exc.response.status_code} {exc.response.text[:200]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                _SERVICE, f"{method} {path} failed: {exc!r}"
            ) from exc
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(_SERVICE, f"{method} {path} returned non-JSON body") from exc
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def find_contact_by_email(self, email: str) -> dict[str, Any] | None:
        data = await self._request(
            "GET",
            "/contacts/search",
            params={"email": email, "locationId": self._location_id},
        )
        contacts = data.get("contacts") or []
        return contacts[0] if contacts else None

    async def create_contact(
        self, email: str, name: str | None, avatar: str | None = None
    ) -> dict[str, Any] | None:
        data = await self._request(
            "POST",
            "/contacts/",
            json={
                "locationId": self._location_id,
                "email": email,
                "name": name,
                "profilePhoto": avatar,
                "tags": ["google-login", "dashboard"],
            },
        )
        return data.get("contact")

    # ------------------------------------------------------------------
    # Products / credit packages
    # ------------------------------------------------------------------

    async def fetch_products(self) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/products/", params={"locationId": self._location_id}
        )
        return list(data.get("products") or [])

    async def fetch_product_price(self, product_id: str) -> dict[str, Any] | None:
        """First listed price of a product: {"amount", "currency", "_id"} or None."""
        data = await self._request(
            "GET",
            f"/products/{product_id}/price",
            params={"locationId": self._location_id},
        )
        prices = data.get("prices") or []
        return prices[0] if prices else None

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def create_draft_invoice(
        self,
        *,
        contact: dict[str, Any],
        item_name: str,
        product_id: str,
        price_id: str | None,
        amount: float,
        currency: str,
        invoice_number: str,
    ) -> dict[str, Any]:
        today = date.today().isoformat()
        data = await self._request(
            "POST",
            "/invoices/",
            json={
                "altId": self._location_id,
                "altType": "location",
                "name": f"Invoice for {item_name}",
                "currency": currency.upper(),
                "businessDetails": {"name": self._business_name},
                "items": [
                    {
                        "name": item_name,
                        "productId": product_id,
                        "priceId": price_id or "manual",
                        "qty": 1,
                        "amount": amount,
                        "currency": currency.upper(),
                        "type": "one_time",
                    }
                ],
                "contactDetails": contact,
                "invoiceNumber": invoice_number,
                "issueDate": today,
                "dueDate": today,
                "liveMode": True,
                "automaticTaxesEnabled": False,
            },
        )
        if not data.get("_id"):
            raise UpstreamUnavailableError(_SERVICE, "invoice created without an _id")
        return data

    async def record_invoice_payment(
        self, invoice_id: str, amount: float, note: str, fulfilled_at: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/invoices/{invoice_id}/record-payment",
            json={
                "altId": self._location_id,
                "altType": "location",
                "mode": "other",
                "notes": note,
                "amount": amount,
                "fulfilledAt": fulfilled_at,
            },
        )
