from storefront.domain.models import OrderStatus
from storefront.infrastructure.backend.normalize import (
    extract_avatar_urls,
    normalize_book,
    normalize_draft_order,
    normalize_order_status,
    normalize_pages,
)


def test_book_template_pages_accept_either_field_spelling():
    book = normalize_book({
        "id": "b1",
        "publication_code": "BOOK_1",
        "price_cents": "3999",
        "template_data": {
            "characters": [],
            "pages": [
                {"character_roles": ["parent", "child"], "template_image_url": "https://t/1.png"},
                {"characterRoles": ["child"], "imageUrl": "https://t/2.png"},
                {},
            ],
        },
    })
    assert book.page_count == 3
    assert book.pages[0].character_roles == ["parent", "child"]
    assert book.pages[1].template_image_url == "https://t/2.png"
    assert book.pages[2].template_image_url == ""
    assert book.price == "39.99"


def test_draft_order_requires_order_id():
    assert normalize_draft_order({"success": True, "status": "pending"}, "BOOK_1") is None
    order = normalize_draft_order({"success": True, "orderId": "abc", "status": "pending"}, "BOOK_1")
    assert order.id == "abc"
    assert order.book_code == "BOOK_1"


def test_pages_from_bare_list_and_wrapped_objects():
    bare = normalize_pages([{"pageNumber": 2, "imageUrl": "a"}, {"page_number": 3, "image_url": "b"}])
    wrapped = normalize_pages({"data": [{"page_number": 1, "image_url": "c", "created_at": "t"}]})
    assert [(p.page_number, p.image_url) for p in bare] == [(2, "a"), (3, "b")]
    assert wrapped[0].created_at == "t"


def test_pages_without_numbers_fall_back_to_position():
    pages = normalize_pages({"pages": [{"image_url": "a"}, {"image_url": "b"}]})
    assert [p.page_number for p in pages] == [1, 2]


def test_unusable_pages_payload_is_empty():
    assert normalize_pages(None) == []
    assert normalize_pages({"pages": "oops"}) == []


def test_status_reads_nested_progress_and_flat_fallback():
    nested = normalize_order_status({"id": "o", "progress": {"pagesGenerated": 4, "totalPages": 12},
                                     "bookComplete": False}, "o")
    flat = normalize_order_status({"id": "o", "pages_generated": 7, "total_pages": 12}, "o")
    assert (nested.progress.pages_generated, nested.progress.total_pages) == (4, 12)
    assert (flat.progress.pages_generated, flat.progress.total_pages) == (7, 12)


def test_avatar_map_with_only_plain_avatar_url():
    urls = extract_avatar_urls({"characters": {
        "parent": {"avatar_url": "https://a/parent.png"},
        "child": {"avatar_url": "https://a/child.png", "original_photo_url": "https://p/child.jpg"},
    }})
    assert urls == {"parent": "https://a/parent.png", "child": "https://a/child.png"}


def test_avatar_array_prefers_stylized_url():
    urls = extract_avatar_urls({"characters": [
        {"role": "parent", "avatar_url": "https://a/p.png", "stylized_avatar_url": "https://s/p.png"},
        {"role": "child", "avatar_url": "https://a/c.png"},
    ]})
    assert urls == {"parent": "https://s/p.png", "child": "https://a/c.png"}


def test_avatar_legacy_characters_data_field():
    urls = extract_avatar_urls({"characters_data": {"grandma": {"stylized_avatar_url": "https://s/g.png"}}})
    assert urls == {"grandma": "https://s/g.png"}


def test_missing_avatar_data_is_empty_not_an_error():
    assert extract_avatar_urls({}) == {}
    assert extract_avatar_urls({"characters": None, "characters_data": None}) == {}
    assert extract_avatar_urls(OrderStatus(id="o")) == {}


def test_legacy_entry_without_url_keeps_earlier_avatar():
    urls = extract_avatar_urls({
        "characters": {"parent": {"avatar_url": "https://a/parent.png"}},
        "characters_data": {
            "parent": {"original_photo_url": "https://p/parent.jpg"},
            "child": {"original_photo_url": "https://p/child.jpg"},
        },
    })
    assert urls == {"parent": "https://a/parent.png"}


def test_count_completion_with_unknown_total():
    done = normalize_order_status({"id": "o", "pages_generated": 12, "total_pages": 0}, "o")
    idle = normalize_order_status({"id": "o"}, "o")
    assert done.generation_complete
    assert not idle.generation_complete


def test_status_keeps_book_uuid():
    status = normalize_order_status({"order": {"id": "o", "book_id": "0b6f1d7e"}}, "o")
    assert status.book_id == "0b6f1d7e"
    assert status.book_code == ""
