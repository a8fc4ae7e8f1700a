# storefront/infrastructure/backend/normalize.py
"""
Normalization of backend payloads into the canonical domain models.

The book/order backend has returned several shapes over time (bare arrays
versus wrapped objects, snake_case versus camelCase, three different
layouts for character avatars). All of that tolerance lives here so the
rest of the service only ever sees one shape.
"""
import logging
from typing import Any, Dict, List, Optional

from storefront.domain.models import (
    Book,
    CharacterAssets,
    DraftOrder,
    GeneratedPage,
    OrderStatus,
    Progress,
    TemplatePage,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [normalize] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def _pick(data: Dict[str, Any], *keys: str, default=None):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_template_pages(template_data: Optional[Dict[str, Any]]) -> List[TemplatePage]:
    raw_pages = (template_data or {}).get("pages") or []
    pages = []
    for idx, raw in enumerate(raw_pages):
        raw = raw or {}
        roles = _pick(raw, "character_roles", "characterRoles", default=[]) or []
        pages.append(TemplatePage(
            index=idx,
            character_roles=[str(r) for r in roles if r],
            template_image_url=str(_pick(
                raw, "template_image_url", "templateImageUrl", "image_url", "imageUrl", default=""
            ) or ""),
        ))
    return pages


def normalize_book(raw: Dict[str, Any]) -> Book:
    return Book(
        id=str(_pick(raw, "id", default="")),
        publication_code=str(_pick(raw, "publication_code", "publicationCode", default="")),
        title=_pick(raw, "title", default=""),
        subtitle=_pick(raw, "subtitle", default=""),
        description=_pick(raw, "description", default=""),
        price_cents=_as_int(_pick(raw, "price_cents", "priceCents", default=0)),
        preview_image_url=_pick(raw, "preview_image_url", "previewImageUrl", default=""),
        detail_images=list(_pick(raw, "detail_images", "detailImages", default=[]) or []),
        is_active=bool(_pick(raw, "is_active", "isActive", default=True)),
        pages=normalize_template_pages(_pick(raw, "template_data", "templateData")),
    )


def normalize_draft_order(raw: Optional[Dict[str, Any]], book_code: str) -> Optional[DraftOrder]:
    """Returns None when the create-order response carries no order id."""
    if not raw or not raw.get("orderId"):
        return None
    return DraftOrder(id=str(raw["orderId"]), status=raw.get("status") or "pending", book_code=book_code)


def _assets(entry: Dict[str, Any]) -> CharacterAssets:
    return CharacterAssets(
        original_photo_url=entry.get("original_photo_url") or "",
        avatar_url=entry.get("avatar_url") or "",
        stylized_avatar_url=entry.get("stylized_avatar_url") or "",
    )


def _merge(found: Dict[str, CharacterAssets], role: str, entry: Dict[str, Any]) -> None:
    # A later layout only replaces a role when it actually carries an avatar.
    assets = _assets(entry)
    if role not in found or assets.display_url:
        found[role] = assets


def extract_characters(raw: Dict[str, Any]) -> Dict[str, CharacterAssets]:
    """
    Collect per-role character assets from any of the historical layouts:

    - ``characters`` as a role-keyed map
    - ``characters_data`` as a role-keyed map (legacy field name)
    - ``characters`` as an array of records carrying a ``role``

    Later layouts override earlier ones for the same role when they have an avatar URL.
    """
    found: Dict[str, CharacterAssets] = {}

    characters = raw.get("characters")
    if isinstance(characters, dict):
        for role, entry in characters.items():
            if isinstance(entry, dict):
                _merge(found, role, entry)

    legacy = raw.get("characters_data")
    if isinstance(legacy, dict):
        for role, entry in legacy.items():
            if isinstance(entry, dict):
                _merge(found, entry.get("role") or role, entry)

    if isinstance(characters, list):
        for entry in characters:
            if isinstance(entry, dict) and entry.get("role"):
                _merge(found, entry["role"], entry)

    return found


def extract_avatar_urls(raw_or_status) -> Dict[str, str]:
    """role -> displayable avatar URL. Roles without any URL are left out."""
    if isinstance(raw_or_status, OrderStatus):
        characters = raw_or_status.characters
    else:
        characters = extract_characters(raw_or_status or {})
    return {role: assets.display_url for role, assets in characters.items() if assets.display_url}


def normalize_order_status(raw: Dict[str, Any], order_id: str) -> OrderStatus:
    raw = raw or {}
    # Some deployments wrap the order, some return it flat.
    order = raw.get("order") if isinstance(raw.get("order"), dict) else raw

    nested = raw.get("progress") or order.get("progress") or {}
    progress = Progress(
        pages_generated=_as_int(_pick(nested, "pagesGenerated", "pages_generated",
                                      default=_pick(order, "pages_generated", "pagesGenerated", default=0))),
        total_pages=_as_int(_pick(nested, "totalPages", "total_pages",
                                  default=_pick(order, "total_pages", "totalPages", default=0))),
    )

    return OrderStatus(
        id=str(_pick(order, "id", default=order_id)),
        status=_pick(order, "status", default="pending"),
        book_code=str(_pick(order, "bookCode", "book_code", default="")),
        book_id=str(_pick(order, "book_id", "bookId", default="")),
        characters=extract_characters(order),
        progress=progress,
        book_complete=bool(_pick(raw, "bookComplete", "book_complete",
                                 default=_pick(order, "bookComplete", "book_complete", default=False))),
        avatars_generated=bool(_pick(order, "avatars_generated", "avatarsGenerated", default=False)),
        preview_generated=bool(_pick(order, "preview_generated", "previewGenerated", default=False)),
    )


def normalize_pages(data: Any) -> List[GeneratedPage]:
    if isinstance(data, list):
        raw_pages = data
    elif isinstance(data, dict):
        raw_pages = data.get("pages") or data.get("data") or []
    else:
        raw_pages = []

    if not isinstance(raw_pages, list):
        logger.warning(f"Unexpected pages payload type: {type(raw_pages).__name__}")
        return []

    pages = []
    for position, p in enumerate(raw_pages):
        p = p or {}
        pages.append(GeneratedPage(
            page_number=_as_int(_pick(p, "pageNumber", "page_number"), default=position + 1),
            image_url=_pick(p, "imageUrl", "image_url", default="") or "",
            created_at=_pick(p, "createdAt", "created_at"),
            is_preview=_pick(p, "isPreview", "is_preview"),
        ))
    return pages
