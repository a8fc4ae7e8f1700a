import hashlib
import hmac
import json
import time

import pytest

from storefront.domain.errors import NetworkError, NotFoundError
from storefront.domain.models import Book, DraftOrder, OrderPhase, TemplatePage
from storefront.domain.session import CustomizationForm, OrderSession, OrderSessionRegistry
from storefront.infrastructure.backend.normalize import normalize_order_status, normalize_pages
from storefront.infrastructure.payments.stripe_gateway import StripeGateway

ORDER_ID = "3f1c2a9e-5b7d-4e8a-9c01-2d3e4f5a6b7c"
BOOK_CODE = "BOOK_1769178064160"


def make_book(page_count=10, roles=("parent", "child"), with_templates=True, is_active=True) -> Book:
    pages = []
    for i in range(page_count):
        # Roles spread over pages so only their union covers every role.
        page_roles = [roles[i % len(roles)]] if roles else []
        pages.append(TemplatePage(
            index=i,
            character_roles=page_roles,
            template_image_url=f"https://cdn.example.com/templates/{i + 1}.png" if with_templates else "",
        ))
    return Book(
        id="0b6f1d7e-1111-4c2a-8f00-aaaaaaaaaaaa",
        publication_code=BOOK_CODE,
        title="A Day With You",
        price_cents=3999,
        is_active=is_active,
        pages=pages,
    )


def status_payload(generated=0, total=10, complete=None, **extra) -> dict:
    payload = {
        "id": ORDER_ID,
        "status": "processing",
        "bookCode": BOOK_CODE,
        "progress": {"pagesGenerated": generated, "totalPages": total},
    }
    if complete is not None:
        payload["bookComplete"] = complete
    payload.update(extra)
    return payload


def pages_payload(count, start=1) -> dict:
    return {"pages": [
        {"page_number": n, "imageUrl": f"https://cdn.example.com/orders/{ORDER_ID}/{n}.png",
         "created_at": "2026-10-01T12:00:00Z"}
        for n in range(start, start + count)
    ]}


class FakeBackend:
    """Stands in for the book/order API; payloads go through the real normalizers."""

    def __init__(self, book=None, statuses=None, pages=None):
        self.book = book or make_book()
        self.statuses = list(statuses or [status_payload()])
        self.pages = pages if pages is not None else []
        self.calls = []
        self.failing = set()
        self.avatar_response = {"message": "ok"}

    def _record(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise NetworkError(f"Failed to {name}: 500 - boom")

    def count(self, name) -> int:
        return self.calls.count(name)

    async def list_books(self):
        self._record("list_books")
        return [self.book]

    async def get_book(self, code):
        self._record("get_book")
        if code != self.book.publication_code:
            raise NotFoundError(f"fetch book: not found ({code})")
        return self.book

    async def create_order(self, book_code, customer_email=None):
        self._record("create_order")
        return DraftOrder(id=ORDER_ID, status="pending", book_code=book_code)

    async def upload_photo(self, order_id, role, filename, content, content_type="application/octet-stream"):
        self._record("upload_photo")
        return {"message": "uploaded", "photo_url": f"https://cdn.example.com/photos/{role}.jpg"}

    async def generate_avatars(self, order_id):
        self._record("generate_avatars")
        return self.avatar_response

    async def generate_preview(self, order_id):
        self._record("generate_preview")
        return {"message": "ok"}

    async def generate_pages(self, order_id):
        self._record("generate_pages")
        return {"message": "started"}

    async def get_order_status(self, order_id):
        self._record("get_order_status")
        raw = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(raw, Exception):
            raise raw
        return normalize_order_status(raw, order_id)

    async def get_order_pages(self, order_id):
        self._record("get_order_pages")
        return normalize_pages(self.pages)


def seed_session(registry: OrderSessionRegistry, book: Book, phase=OrderPhase.PREVIEW_READY) -> OrderSession:
    session = OrderSession(order_id=ORDER_ID, book=book, form=CustomizationForm(roles=["parent", "child"]))
    session.phase = phase
    return registry.add(session)


@pytest.fixture
def registry():
    return OrderSessionRegistry()


@pytest.fixture
def backend():
    return FakeBackend()


WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    """Records checkout sessions; verifies webhook signatures with the real Stripe code."""

    def __init__(self, sessions=None):
        self.created = []
        self.sessions = sessions or {}

    def create_checkout_session(self, **params):
        self.created.append(params)
        session_id = f"cs_test_{len(self.created)}"
        return {"id": session_id, "url": f"https://checkout.stripe.com/c/pay/{session_id}"}

    def retrieve_session(self, session_id):
        return self.sessions.get(session_id, {})

    def verify_event(self, payload, signature):
        return StripeGateway(secret_key="sk_test", webhook_secret=WEBHOOK_SECRET).verify_event(payload, signature)


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def completed_event(metadata, payment_status="paid") -> str:
    return json.dumps({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_test_9", "payment_status": payment_status, "metadata": metadata}},
    })
