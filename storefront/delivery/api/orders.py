# storefront/delivery/api/orders.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from storefront.delivery.api.deps import get_bootstrap, get_payments, get_reconciler, get_registry
from storefront.delivery.api.errors import to_http
from storefront.delivery.schemas.body import CharacterNameBody

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

# Order ids are backend UUIDs; anything shorter is a truncated or mangled id.
MIN_ORDER_ID_LENGTH = 30


def valid_order_id(order_id: str) -> str:
    if not order_id or len(order_id) < MIN_ORDER_ID_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The order ID is invalid or missing.")
    return order_id


def _session_state(session) -> dict:
    return {
        "orderId": session.order_id,
        "phase": session.phase.value,
        "customization": session.form.to_dict(),
        "avatars": session.avatars,
    }


@router.put("/orders/{order_id}/characters/{role}/name")
async def set_character_name(role: str, body: CharacterNameBody,
                             order_id: str = Depends(valid_order_id), bootstrap=Depends(get_bootstrap)):
    try:
        session = bootstrap.set_name(order_id, role, body.name)
    except Exception as e:
        raise to_http(e, order_id)
    return _session_state(session)


@router.post("/orders/{order_id}/characters/{role}/photo")
async def upload_character_photo(role: str, photo: UploadFile = File(...),
                                 order_id: str = Depends(valid_order_id), bootstrap=Depends(get_bootstrap)):
    content = await photo.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded photo is empty.")
    try:
        session = await bootstrap.upload_photo(
            order_id, role, photo.filename or f"{role}.jpg", content,
            photo.content_type or "application/octet-stream",
        )
    except Exception as e:
        raise to_http(e, order_id)
    return _session_state(session)


@router.get("/orders/{order_id}/customization")
async def get_customization(order_id: str = Depends(valid_order_id), registry=Depends(get_registry)):
    try:
        session = registry.get(order_id)
    except Exception as e:
        raise to_http(e, order_id)
    return _session_state(session)


@router.post("/orders/{order_id}/avatars")
async def generate_avatars(order_id: str = Depends(valid_order_id), reconciler=Depends(get_reconciler)):
    logger.info(f"=== AVATARS START for {order_id} ===")
    try:
        avatars = await reconciler.request_avatars(order_id)
    except Exception as e:
        raise to_http(e, order_id)
    logger.info(f"=== AVATARS SUCCESS for {order_id} ===")
    return {"orderId": order_id, "avatars": avatars}


@router.post("/orders/{order_id}/preview")
async def generate_preview(order_id: str = Depends(valid_order_id), reconciler=Depends(get_reconciler)):
    logger.info(f"=== PREVIEW START for {order_id} ===")
    try:
        location = await reconciler.request_preview(order_id)
    except Exception as e:
        raise to_http(e, order_id)
    return {"orderId": order_id, "redirect": location}


@router.get("/orders/{order_id}/pages")
async def get_pages(session_id: Optional[str] = None, order_id: str = Depends(valid_order_id),
                    reconciler=Depends(get_reconciler), payments=Depends(get_payments)):
    try:
        paid = await payments.is_paid(order_id, session_id)
        view = await reconciler.reconcile_pages(order_id, paid=paid)
    except Exception as e:
        raise to_http(e, order_id)
    return view.model_dump()


@router.post("/orders/{order_id}/full-book")
async def generate_full_book(session_id: Optional[str] = None, order_id: str = Depends(valid_order_id),
                             reconciler=Depends(get_reconciler), payments=Depends(get_payments)):
    logger.info(f"=== FULL BOOK START for {order_id} ===")
    try:
        paid = await payments.is_paid(order_id, session_id)
        view = await reconciler.generate_full_book(order_id, paid=paid)
    except Exception as e:
        raise to_http(e, order_id)
    logger.info(f"=== FULL BOOK SUCCESS for {order_id} ===")
    return view.model_dump()


@router.get("/orders/{order_id}/progress")
async def get_progress(order_id: str = Depends(valid_order_id), registry=Depends(get_registry)):
    try:
        session = registry.get(order_id)
    except Exception as e:
        raise to_http(e, order_id)
    return {"orderId": order_id, "phase": session.phase.value, "progress": session.progress}
