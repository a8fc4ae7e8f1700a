# storefront/infrastructure/payments/stripe_gateway.py
import json
import logging
from typing import Any, Dict, Optional

import stripe

from storefront.config.settings import settings
from storefront.domain.errors import NetworkError, SignatureError, ValidationError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [stripe] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

WEBHOOK_TOLERANCE_SECONDS = 300


def _plain(obj) -> Dict[str, Any]:
    if not obj:
        return {}
    return {key: obj[key] for key in obj.keys()}


class StripeGateway:
    """Thin blocking wrapper over the Stripe SDK. Call it from a worker thread."""

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

    def _require_key(self) -> str:
        if not self.secret_key:
            raise ValidationError("Missing STRIPE_SECRET_KEY in environment variables.")
        return self.secret_key

    def create_checkout_session(
        self,
        name: str,
        unit_amount: int,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        description: str = "",
        branded: bool = False,
    ) -> Dict[str, Any]:
        product_data = {"name": name}
        if description:
            product_data["description"] = description

        params: Dict[str, Any] = dict(
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": settings.CURRENCY,
                    "product_data": product_data,
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        if branded:
            params["custom_text"] = {"submit": {"message": f"Thank you for choosing {settings.BRAND_NAME}!"}}

        try:
            session = stripe.checkout.Session.create(api_key=self._require_key(), **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise NetworkError(f"Failed to create Stripe Checkout session: {e.user_message or e}") from e
        return {"id": session.id, "url": session.url}

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._require_key())
        except stripe.InvalidRequestError:
            return {}
        except stripe.StripeError as e:
            raise NetworkError(f"Failed to retrieve Stripe session: {e}") from e
        return {
            "id": session.id,
            "payment_status": getattr(session, "payment_status", None),
            "metadata": _plain(getattr(session, "metadata", None)),
        }

    def verify_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Check the Stripe-Signature header against the webhook secret and parse the event."""
        if not self.webhook_secret:
            raise SignatureError("Missing STRIPE_WEBHOOK_SECRET in environment variables.")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS)
            event = json.loads(body)
        except stripe.SignatureVerificationError as e:
            raise SignatureError("Webhook signature verification failed") from e
        except ValueError as e:
            raise SignatureError("Webhook payload is not valid JSON") from e

        obj = (event.get("data") or {}).get("object") or {}
        return {
            "id": event.get("id"),
            "type": event.get("type", ""),
            "object_id": obj.get("id"),
            "metadata": dict(obj.get("metadata") or {}),
            "payment_status": obj.get("payment_status"),
        }
