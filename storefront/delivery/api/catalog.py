# storefront/delivery/api/catalog.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from storefront.delivery.api.deps import get_backend, get_bootstrap
from storefront.delivery.api.errors import to_http
from storefront.delivery.schemas.body import CreateOrderBody

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.get("/books")
async def list_books(backend=Depends(get_backend)):
    try:
        books = await backend.list_books()
    except Exception as e:
        raise to_http(e, "books")
    return {"books": [b.model_dump() for b in books if b.is_active]}


@router.get("/books/{code}")
async def get_book(code: str, backend=Depends(get_backend)):
    try:
        book = await backend.get_book(code)
    except Exception as e:
        raise to_http(e, code)
    return {"book": book.model_dump()}


@router.post("/books/{code}/orders", status_code=201)
async def start_customization(code: str, body: Optional[CreateOrderBody] = None, bootstrap=Depends(get_bootstrap)):
    """Fetch the book and open a draft order for it before any personalization input."""
    logger.info(f"=== BOOTSTRAP START for book {code} ===")
    try:
        session = await bootstrap.initialize(code, body.customerEmail if body else None)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http(e, code)

    logger.info(f"=== BOOTSTRAP SUCCESS for book {code}: order {session.order_id} ===")
    return {
        "orderId": session.order_id,
        "phase": session.phase.value,
        "book": session.book.model_dump(),
        "customization": session.form.to_dict(),
    }
