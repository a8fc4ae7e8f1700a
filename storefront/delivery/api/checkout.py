# storefront/delivery/api/checkout.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from storefront.config.settings import settings
from storefront.delivery.api.deps import get_payments
from storefront.delivery.api.errors import to_http
from storefront.delivery.schemas.body import CheckoutBody, PreviewCheckoutBody

router = APIRouter()
webhook_router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.STOREFRONT_URL).rstrip("/")


@router.post("/checkout-sessions")
async def create_checkout_session(request: Request, body: CheckoutBody, payments=Depends(get_payments)):
    try:
        return await payments.create_checkout_session(
            book_title=body.bookTitle,
            book_id=body.bookId,
            price_cents=body.priceInCents,
            origin=_origin(request),
            book_description=body.bookDescription or "",
        )
    except Exception as e:
        raise to_http(e, f"checkout {body.bookId}")


@router.post("/preview-checkout-sessions")
async def create_preview_checkout_session(request: Request, body: PreviewCheckoutBody,
                                          payments=Depends(get_payments)):
    try:
        return await payments.create_preview_checkout_session(
            order_id=body.orderId,
            origin=_origin(request),
            book_title=body.bookTitle or "",
            book_code=body.bookCode or "",
            price_cents=body.priceInCents,
        )
    except Exception as e:
        raise to_http(e, f"preview checkout {body.orderId}")


@webhook_router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, payments=Depends(get_payments)):
    raw_body = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe-Signature header")

    try:
        return await payments.handle_webhook(raw_body, signature)
    except Exception as e:
        raise to_http(e, "stripe webhook")
