# storefront/domain/models.py
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


def format_price(price_cents: int) -> str:
    """3999 -> "39.99"."""
    return f"{price_cents / 100:.2f}"


class TemplatePage(BaseModel):
    index: int
    character_roles: List[str] = Field(default_factory=list)
    template_image_url: str = ""


class Book(BaseModel):
    id: str
    publication_code: str
    title: str = ""
    subtitle: str = ""
    description: str = ""
    price_cents: int = 0
    preview_image_url: str = ""
    detail_images: List[str] = Field(default_factory=list)
    is_active: bool = True
    pages: List[TemplatePage] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @computed_field
    @property
    def price(self) -> str:
        return format_price(self.price_cents)


class CharacterAssets(BaseModel):
    original_photo_url: str = ""
    avatar_url: str = ""
    stylized_avatar_url: str = ""

    @property
    def display_url(self) -> str:
        return self.stylized_avatar_url or self.avatar_url


class Progress(BaseModel):
    pages_generated: int = 0
    total_pages: int = 0


class DraftOrder(BaseModel):
    id: str
    status: str = "pending"
    book_code: str = ""


class OrderStatus(BaseModel):
    id: str
    status: str = "pending"
    book_code: str = ""
    book_id: str = ""
    characters: Dict[str, CharacterAssets] = Field(default_factory=dict)
    progress: Progress = Field(default_factory=Progress)
    book_complete: bool = False
    avatars_generated: bool = False
    preview_generated: bool = False

    @property
    def generation_complete(self) -> bool:
        # Backends have been seen setting either signal without the other.
        if self.book_complete:
            return True
        return self.progress.pages_generated >= max(self.progress.total_pages, 1)


class GeneratedPage(BaseModel):
    page_number: int
    image_url: str = ""
    created_at: Optional[str] = None
    is_preview: Optional[bool] = None


class OrderPage(BaseModel):
    page_number: int
    image_url: str = ""
    created_at: Optional[str] = None
    unlocked: bool = False
    is_placeholder: bool = False


class OrderPhase(str, Enum):
    DRAFT = "draft"
    AVATARS_REQUESTED = "avatars_requested"
    AVATARS_READY = "avatars_ready"
    PREVIEW_REQUESTED = "preview_requested"
    PREVIEW_READY = "preview_ready"
    PAID = "paid"
    UNPAID_LOCKED = "unpaid_locked"
    FULL_BOOK_REQUESTED = "full_book_requested"
    FULL_BOOK_READY = "full_book_ready"


class PageView(BaseModel):
    order_id: str
    pages: List[OrderPage]
    paid: bool = False
    preview_limit: int = 4
    progress: int = 0
    full_book_ready: bool = False

    @computed_field
    @property
    def preview_pages(self) -> List[OrderPage]:
        if self.paid:
            return self.pages
        return self.pages[: self.preview_limit]
