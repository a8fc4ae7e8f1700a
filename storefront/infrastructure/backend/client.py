# storefront/infrastructure/backend/client.py
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from storefront.config.settings import settings
from storefront.domain.errors import NetworkError, NotFoundError
from storefront.domain.models import Book, DraftOrder, GeneratedPage, OrderStatus
from storefront.infrastructure.backend.normalize import (
    normalize_book,
    normalize_draft_order,
    normalize_order_status,
    normalize_pages,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [backend] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


class BackendClient:
    """Async client for the public book/order API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or settings.BACKEND_API_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.BACKEND_TIMEOUT_SECONDS)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, what: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        session = await self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text()
                if response.status == 404:
                    raise NotFoundError(f"{what}: not found ({path})")
                if response.status >= 400:
                    logger.error(f"{method} {path} -> {response.status}: {text[:300]}")
                    raise NetworkError(f"Failed to {what}: {response.status} - {text}")
                if not text:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError:
                    raise NetworkError(f"Failed to {what}: response is not JSON")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise NetworkError(f"Failed to {what}: {type(e).__name__}") from e

    async def list_books(self) -> List[Book]:
        data = await self._request("GET", "/api/public/books", "fetch books") or {}
        return [normalize_book(b) for b in data.get("books") or []]

    async def get_book(self, code: str) -> Book:
        data = await self._request("GET", f"/api/public/books/{code}", "fetch book") or {}
        if not data.get("book"):
            raise NetworkError("Invalid response format: missing book property")
        return normalize_book(data["book"])

    async def create_order(self, book_code: str, customer_email: Optional[str] = None) -> DraftOrder:
        body = {
            "bookCode": book_code,
            "customerEmail": customer_email or settings.DEFAULT_CUSTOMER_EMAIL,
        }
        data = await self._request("POST", "/api/public/orders", "create order", json=body)
        order = normalize_draft_order(data, book_code)
        if order is None:
            raise NetworkError("Invalid order response: missing orderId")
        logger.info(f"Draft order {order.id} created for book {book_code}")
        return order

    async def upload_photo(self, order_id: str, role: str, filename: str, content: bytes,
                           content_type: str = "application/octet-stream") -> Dict[str, Any]:
        form = aiohttp.FormData()
        form.add_field("photo", content, filename=filename, content_type=content_type)
        form.add_field("role", role)
        data = await self._request("POST", f"/api/public/orders/{order_id}/upload-photo", "upload photo", data=form)
        return data or {}

    async def generate_avatars(self, order_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/public/orders/{order_id}/generate-avatars", "generate avatars") or {}

    async def generate_preview(self, order_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/public/orders/{order_id}/generate-preview", "generate preview") or {}

    async def generate_pages(self, order_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/public/orders/{order_id}/generate-pages", "generate full book") or {}

    async def get_order_status(self, order_id: str) -> OrderStatus:
        data = await self._request("GET", f"/api/public/orders/{order_id}/status", "fetch order status")
        return normalize_order_status(data or {}, order_id)

    async def get_order_pages(self, order_id: str) -> List[GeneratedPage]:
        data = await self._request("GET", f"/api/public/orders/{order_id}/pages", "fetch pages")
        return normalize_pages(data)
