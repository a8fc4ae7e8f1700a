# storefront/domain/order_bootstrap.py
import logging
from typing import List, Optional

from storefront.domain.errors import NotFoundError, StorefrontError
from storefront.domain.models import Book
from storefront.domain.session import CustomizationForm, OrderSession, OrderSessionRegistry, UploadedPhoto
from storefront.infrastructure.imaging.thumbnail import make_preview_data_url

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def derive_roles(book: Book) -> List[str]:
    """Union of character roles over all template pages, in first-seen order."""
    roles: List[str] = []
    for page in book.pages:
        for role in page.character_roles:
            if role not in roles:
                roles.append(role)
    return roles


class OrderBootstrap:
    def __init__(self, backend, registry: OrderSessionRegistry):
        self.backend = backend
        self.registry = registry

    async def initialize(self, book_code: str, customer_email: Optional[str] = None) -> OrderSession:
        book = await self.backend.get_book(book_code)
        if not book.is_active:
            raise NotFoundError(f"Book {book_code} is not available")

        order = await self.backend.create_order(book_code, customer_email)
        roles = derive_roles(book)
        logger.info(f"Order {order.id} bootstrapped for book {book_code} with roles {roles}")
        return self.registry.add(OrderSession(order_id=order.id, book=book, form=CustomizationForm(roles=roles)))

    def set_name(self, order_id: str, role: str, name: str) -> OrderSession:
        session = self.registry.get(order_id)
        session.form.set_name(role, name)
        return session

    async def upload_photo(self, order_id: str, role: str, filename: str, content: bytes,
                           content_type: str = "application/octet-stream") -> OrderSession:
        session = self.registry.get(order_id)
        photo = UploadedPhoto(
            filename=filename,
            content_type=content_type,
            preview_url=make_preview_data_url(content),
        )
        session.form.begin_upload(role, photo)

        try:
            result = await self.backend.upload_photo(order_id, role, filename, content, content_type)
        except StorefrontError:
            logger.warning(f"Upload failed for order {order_id} role '{role}', field reverted")
            session.form.revert_upload(role)
            raise

        session.form.confirm_upload(role, photo_url=(result or {}).get("photo_url", ""))
        logger.info(f"Photo uploaded for order {order_id} role '{role}'")
        return session
