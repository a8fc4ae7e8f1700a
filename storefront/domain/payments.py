# storefront/domain/payments.py
import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from storefront.config.settings import settings
from storefront.domain.errors import ValidationError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [payments] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

CHECKOUT_COMPLETED = "checkout.session.completed"


class PaymentLedger:
    """Orders whose payment was confirmed by a signed webhook, keyed by order id."""

    def __init__(self):
        self._paid: Dict[str, str] = {}
        self._lock = threading.Lock()

    def mark_paid(self, order_id: str, checkout_session_id: str) -> None:
        with self._lock:
            self._paid[order_id] = checkout_session_id

    def is_paid(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._paid


class PaymentService:
    def __init__(self, gateway, ledger: PaymentLedger, executor: Optional[ThreadPoolExecutor] = None):
        self.gateway = gateway
        self.ledger = ledger
        self.executor = executor

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, lambda: fn(*args, **kwargs))

    async def create_checkout_session(self, book_title: str, book_id: str, price_cents: Any,
                                      origin: str, book_description: str = "") -> Dict[str, Any]:
        book_title = (book_title or "").strip()
        book_id = (book_id or "").strip()
        book_description = (book_description or "").strip()

        if not book_title:
            raise ValidationError("Missing bookTitle.")
        if not book_id:
            raise ValidationError("Missing bookId.")
        try:
            price_cents = int(price_cents)
        except (TypeError, ValueError):
            price_cents = None
        if price_cents is None or price_cents < settings.MIN_CHECKOUT_AMOUNT_CENTS:
            raise ValidationError("Invalid priceInCents (must be a number in cents, e.g. 1999).")

        session = await self._run(
            self.gateway.create_checkout_session,
            name=book_title,
            description=book_description,
            unit_amount=price_cents,
            success_url=f"{origin}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/payment/cancel",
            metadata={"bookId": book_id},
            branded=True,
        )
        logger.info(f"Checkout session {session['id']} created for book {book_id} ({price_cents} cents)")
        return {"url": session["url"]}

    async def create_preview_checkout_session(self, order_id: str, origin: str, book_title: str = "",
                                              book_code: str = "", price_cents: Any = None) -> Dict[str, Any]:
        order_id = (order_id or "").strip()
        if not order_id:
            raise ValidationError("Missing required field: orderId")
        try:
            price_cents = int(price_cents) if price_cents else settings.FULL_BOOK_PRICE_CENTS
        except (TypeError, ValueError):
            raise ValidationError("Invalid priceInCents (must be a number in cents, e.g. 1999).")
        if price_cents < settings.MIN_CHECKOUT_AMOUNT_CENTS:
            raise ValidationError("Invalid priceInCents (must be a number in cents, e.g. 1999).")

        session = await self._run(
            self.gateway.create_checkout_session,
            name=book_title or "Personalized Storybook",
            description="Your complete personalized storybook with all pages",
            unit_amount=price_cents,
            success_url=f"{origin}/payment/success?session_id={{CHECKOUT_SESSION_ID}}&order_id={order_id}",
            cancel_url=f"{origin}/preview/{order_id}",
            metadata={"orderId": order_id, "bookCode": book_code or "", "flow": "preview"},
        )
        logger.info(f"Preview checkout session {session['id']} created for order {order_id}")
        return {"sessionId": session["id"], "url": session["url"]}

    async def is_paid(self, order_id: str, checkout_session_id: Optional[str] = None) -> bool:
        """
        Payment is confirmed by the processor, never by a client-supplied flag:
        either a signed webhook already recorded it, or the given checkout
        session is paid and belongs to this order.
        """
        if self.ledger.is_paid(order_id):
            return True
        if not checkout_session_id:
            return False

        session = await self._run(self.gateway.retrieve_session, checkout_session_id)
        if session.get("payment_status") != "paid":
            return False
        if (session.get("metadata") or {}).get("orderId") != order_id:
            logger.warning(f"Checkout session {checkout_session_id} does not belong to order {order_id}")
            return False
        self.ledger.mark_paid(order_id, checkout_session_id)
        return True

    async def handle_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        event = await self._run(self.gateway.verify_event, payload, signature)

        if event["type"] == CHECKOUT_COMPLETED:
            metadata = event.get("metadata") or {}
            logger.info(f"{CHECKOUT_COMPLETED}: {event.get('object_id')} metadata={metadata}")
            self.fulfill(event)
        else:
            logger.info(f"Unhandled event type: {event['type']}")
        return {"received": True}

    def fulfill(self, event: Dict[str, Any]) -> None:
        metadata = event.get("metadata") or {}
        order_id = metadata.get("orderId")
        if not order_id:
            # Catalog checkouts carry only a bookId; nothing to unlock.
            logger.info(f"Checkout {event.get('object_id')} for book {metadata.get('bookId')} has no order to unlock")
            return
        if event.get("payment_status") not in (None, "paid"):
            logger.info(f"Checkout {event.get('object_id')} for order {order_id} completed but not paid yet")
            return
        self.ledger.mark_paid(order_id, event.get("object_id") or "")
        logger.info(f"Order {order_id} marked as paid")
