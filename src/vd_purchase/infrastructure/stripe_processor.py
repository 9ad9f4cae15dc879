"""Stripe-backed payment processor.

Hosted checkout creation runs the synchronous Stripe SDK in a worker thread so
the event loop is never blocked. Webhook authenticity is checked over the raw
request bytes with `stripe.WebhookSignature.verify_header` (HMAC-SHA256 of
"{timestamp}.{payload}" plus a timestamp tolerance); the JSON body is parsed
only after the signature holds.
"""

import asyncio
import json
import logging
from typing import Any

import stripe

from config.settings import settings
from src.vd_common.errors import (
    AuthenticityFailureError,
    MalformedEventError,
    UpstreamUnavailableError,
)
from src.vd_purchase.domain.models import CheckoutHandle, PaymentEvent, PurchaseRecord

logger = logging.getLogger(__name__)


class StripePaymentProcessor:
    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        success_url: str,
        cancel_url: str,
        tolerance: int = 300,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._success_url = success_url
        self._cancel_url = cancel_url
        self._tolerance = tolerance

    @classmethod
    def from_settings(cls) -> "StripePaymentProcessor":
        return cls(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            success_url=f"{settings.FRONTEND_URL}/dashboard?purchase=success",
            cancel_url=f"{settings.FRONTEND_URL}/dashboard?purchase=cancelled",
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )

    async def create_checkout_session(
        self,
        purchase: PurchaseRecord,
        customer_email: str | None,
        metadata: dict[str, str],
        image: str | None = None,
    ) -> CheckoutHandle:
        product_data: dict[str, Any] = {"name": purchase.product_name}
        if image:
            product_data["images"] = [image]
        params: dict[str, Any] = {
            "api_key": self._api_key,
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": purchase.currency,
                        "product_data": product_data,
                        "unit_amount": purchase.amount,
                    },
                    "quantity": 1,
                }
            ],
            "client_reference_id": purchase.id,
            "metadata": metadata,
            "success_url": self._success_url,
            "cancel_url": self._cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
        except stripe.StripeError as exc:
            logger.error("stripe checkout creation failed purchase=%s: %s", purchase.id, exc)
            raise UpstreamUnavailableError("stripe", str(exc) or type(exc).__name__) from exc

        if not session.url:
            raise UpstreamUnavailableError("stripe", "checkout session has no redirect url")
        return CheckoutHandle(session_id=session.id, url=session.url)

    def verify_and_parse(self, payload: bytes, signature: str | None) -> PaymentEvent:
        """Authenticate the raw body, then parse it.

        Raises AuthenticityFailureError (reject, 400) when the signature or
        timestamp does not hold, MalformedEventError when a verified body is
        not a usable event.
        """
        if not self._webhook_secret:
            raise AuthenticityFailureError("webhook secret not configured")
        if not signature:
            raise AuthenticityFailureError("missing signature header")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise AuthenticityFailureError("payload is not valid UTF-8") from None
        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, self._tolerance
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise AuthenticityFailureError(str(exc) or "signature mismatch") from None

        try:
            raw = json.loads(body)
        except ValueError:
            raise MalformedEventError("body is not JSON") from None
        return parse_event(raw)


def parse_event(raw: Any) -> PaymentEvent:
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise MalformedEventError("event has no type")
    data = raw.get("data")
    if not isinstance(data, dict):
        raise MalformedEventError("event has no data")
    obj = data.get("object")
    if not isinstance(obj, dict):
        raise MalformedEventError("event has no data.object")
    metadata = obj.get("metadata")
    payment_id = obj.get("payment_intent")
    if isinstance(payment_id, dict):  # expanded object
        payment_id = payment_id.get("id")
    return PaymentEvent(
        event_id=str(raw.get("id") or ""),
        type=raw["type"],
        session_id=obj.get("id"),
        payment_id=payment_id,
        metadata=metadata if isinstance(metadata, dict) else {},
    )
