# storefront/domain/reconciler.py
"""
Generation/preview reconciliation.

Turns the backend's two-phase generation (avatars, then pages) into a
renderable page sequence that always has one entry per template page, and
decides which of those pages a customer may see.
"""
import asyncio
import logging
import math
import time
from typing import Callable, Dict, List, Optional

from storefront.config.settings import settings
from storefront.domain.errors import GenerationTimeoutError, NotFoundError, StorefrontError, ValidationError
from storefront.domain.models import Book, GeneratedPage, OrderPage, OrderPhase, OrderStatus, PageView, Progress
from storefront.domain.order_bootstrap import derive_roles
from storefront.domain.session import CustomizationForm, OrderSession, OrderSessionRegistry
from storefront.infrastructure.backend.normalize import extract_avatar_urls

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [reconciler] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

P = OrderPhase


def progress_percent(progress: Progress) -> int:
    total = progress.total_pages or 1
    pct = (progress.pages_generated / total) * 100
    return int(round(max(0.0, min(100.0, pct))))


def is_unlocked(index: int, paid: bool, preview_limit: int, preview_flag: Optional[bool] = None) -> bool:
    """Teaser rule for a generated page: the backend's preview flag, else all but the last page of the window."""
    if paid:
        return True
    if preview_flag is not None:
        return preview_flag
    return index < preview_limit - 1


def merge_pages(book: Book, generated: List[GeneratedPage], paid: bool, preview_limit: int) -> List[OrderPage]:
    by_number: Dict[int, GeneratedPage] = {p.page_number: p for p in generated if p.image_url}
    pages = []
    for template in book.pages:
        number = template.index + 1
        page = by_number.get(number)
        if page is not None:
            unlocked = is_unlocked(template.index, paid, preview_limit, page.is_preview)
            # Locked pages never expose the generated image.
            pages.append(OrderPage(
                page_number=number,
                image_url=page.image_url if unlocked else template.template_image_url,
                created_at=page.created_at,
                unlocked=unlocked,
            ))
        else:
            pages.append(OrderPage(
                page_number=number,
                image_url=template.template_image_url,
                unlocked=paid,
                is_placeholder=True,
            ))
    return pages


class GenerationReconciler:
    def __init__(self, backend, registry: OrderSessionRegistry,
                 poll_interval: Optional[float] = None, poll_timeout: Optional[float] = None,
                 preview_limit: Optional[int] = None):
        self.backend = backend
        self.registry = registry
        self.poll_interval = poll_interval if poll_interval is not None else settings.POLL_INTERVAL_SECONDS
        self.poll_timeout = poll_timeout if poll_timeout is not None else settings.POLL_TIMEOUT_SECONDS
        self.preview_limit = preview_limit or settings.PREVIEW_PAGE_LIMIT

    @property
    def max_attempts(self) -> int:
        return max(1, math.ceil(self.poll_timeout / max(self.poll_interval, 0.001)))

    async def _book_for(self, order_id: str, status: OrderStatus) -> Book:
        if status.book_code:
            return await self.backend.get_book(status.book_code)
        if status.book_id:
            for book in await self.backend.list_books():
                if status.book_id in (book.id, book.publication_code):
                    return book
        raise NotFoundError(f"Order {order_id} has no known book reference")

    async def _session_for(self, order_id: str, status: Optional[OrderStatus] = None) -> OrderSession:
        session = self.registry.find(order_id)
        if session is not None:
            return session

        # Preview opened without a customization session in this process, e.g. after a restart.
        status = status or await self.backend.get_order_status(order_id)
        book = await self._book_for(order_id, status)
        session = OrderSession(order_id=order_id, book=book, form=CustomizationForm(roles=derive_roles(book)))
        session.avatars = extract_avatar_urls(status)
        session.phase = P.FULL_BOOK_READY if status.generation_complete else P.PREVIEW_READY
        logger.info(f"Adopted order {order_id} in phase {session.phase.value}")
        return self.registry.add(session)

    async def request_avatars(self, order_id: str) -> Dict[str, str]:
        session = self.registry.get(order_id)
        if not session.form.can_generate_avatars():
            raise ValidationError("Every character needs a name and an uploaded photo")

        session.advance(P.AVATARS_REQUESTED)
        start = time.perf_counter()
        try:
            response = await self.backend.generate_avatars(order_id)
            status = await self.backend.get_order_status(order_id)
        except StorefrontError:
            session.advance(P.DRAFT)
            raise

        avatars = extract_avatar_urls(status) or extract_avatar_urls(response)
        if not avatars:
            logger.warning(f"No avatar URLs found for order {order_id}, continuing without them")
        session.avatars = avatars
        session.advance(P.AVATARS_READY)
        logger.info(f"Avatars ready for order {order_id} ({len(avatars)} roles) in {time.perf_counter() - start:.2f}s")
        return avatars

    async def request_preview(self, order_id: str) -> str:
        session = self.registry.get(order_id)
        session.advance(P.PREVIEW_REQUESTED)
        try:
            await self.backend.generate_preview(order_id)
        except StorefrontError:
            session.advance(P.AVATARS_READY)
            raise
        session.advance(P.PREVIEW_READY)
        logger.info(f"Preview generated for order {order_id}")
        return f"/preview/{order_id}"

    async def reconcile_pages(self, order_id: str, paid: bool = False) -> PageView:
        generated, status = await asyncio.gather(
            self.backend.get_order_pages(order_id),
            self.backend.get_order_status(order_id),
        )
        session = await self._session_for(order_id, status)

        if session.phase in (P.PREVIEW_READY, P.UNPAID_LOCKED):
            session.advance(P.PAID if paid else P.UNPAID_LOCKED)

        pages = merge_pages(session.book, generated, paid, self.preview_limit)
        placeholders = sum(1 for p in pages if p.is_placeholder)
        logger.info(f"Order {order_id}: {len(pages)} pages, {placeholders} placeholders, paid={paid}")
        return PageView(
            order_id=order_id,
            pages=pages,
            paid=paid,
            preview_limit=self.preview_limit,
            progress=session.record_progress(progress_percent(status.progress)),
            full_book_ready=status.generation_complete,
        )

    async def _poll_until_complete(self, session: OrderSession,
                                   on_progress: Optional[Callable[[int], None]]) -> OrderStatus:
        order_id = session.order_id
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            try:
                status = await self.backend.get_order_status(order_id)
            except StorefrontError as e:
                logger.warning(f"Poll {attempt} for order {order_id} failed: {e}")
                continue

            pct = session.record_progress(progress_percent(status.progress))
            if on_progress is not None:
                on_progress(pct)
            logger.info(f"Poll {attempt} for order {order_id}: {status.progress.pages_generated}/"
                        f"{status.progress.total_pages} ({pct}%)")
            if status.generation_complete:
                return status
        raise asyncio.TimeoutError()

    async def poll_generation(self, order_id: str,
                              on_progress: Optional[Callable[[int], None]] = None) -> PageView:
        session = await self._session_for(order_id)
        try:
            await asyncio.wait_for(self._poll_until_complete(session, on_progress), timeout=self.poll_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Generation for order {order_id} not complete after {self.poll_timeout}s")
            session.advance(P.PAID)
            raise GenerationTimeoutError(GenerationTimeoutError.notice)

        # One more fetch so the last page generated before completion is included.
        view = await self.reconcile_pages(order_id, paid=True)
        session.advance(P.FULL_BOOK_READY)
        view.full_book_ready = True
        logger.info(f"Full book ready for order {order_id}")
        return view

    async def generate_full_book(self, order_id: str, paid: bool,
                                 on_progress: Optional[Callable[[int], None]] = None) -> PageView:
        session = await self._session_for(order_id)
        if session.phase == P.FULL_BOOK_READY:
            return await self.reconcile_pages(order_id, paid=paid)
        if not paid:
            raise ValidationError("Payment is required before generating the full book")

        if session.phase in (P.PREVIEW_READY, P.UNPAID_LOCKED):
            session.advance(P.PAID)
        session.advance(P.FULL_BOOK_REQUESTED)
        try:
            await self.backend.generate_pages(order_id)
        except StorefrontError:
            session.advance(P.PAID)
            raise
        logger.info(f"Full book generation started for order {order_id}")
        return await self.poll_generation(order_id, on_progress)
