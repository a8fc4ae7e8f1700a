import io

import pytest
from PIL import Image

from storefront.domain.errors import NetworkError, NotFoundError, ValidationError
from storefront.domain.models import OrderPhase
from storefront.domain.order_bootstrap import OrderBootstrap, derive_roles
from storefront.infrastructure.imaging.thumbnail import make_preview_data_url

from conftest import BOOK_CODE, ORDER_ID, FakeBackend, make_book


def _jpeg_bytes(size=(1200, 800)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 120, 80)).save(buf, format="JPEG")
    return buf.getvalue()


def test_roles_are_union_of_page_roles_in_first_seen_order():
    book = make_book(page_count=5, roles=("child", "parent", "child"))
    assert derive_roles(book) == ["child", "parent"]


def test_book_without_roles_has_none():
    assert derive_roles(make_book(page_count=3, roles=())) == []


async def test_initialize_fetches_book_then_creates_draft_order(registry):
    backend = FakeBackend()
    session = await OrderBootstrap(backend, registry).initialize(BOOK_CODE)

    assert backend.calls == ["get_book", "create_order"]
    assert session.order_id == ORDER_ID
    assert session.phase == OrderPhase.DRAFT
    assert session.form.roles == ["parent", "child"]
    assert registry.get(ORDER_ID) is session


async def test_unknown_book_creates_no_order(registry):
    backend = FakeBackend()
    with pytest.raises(NotFoundError):
        await OrderBootstrap(backend, registry).initialize("BOOK_UNKNOWN")
    assert "create_order" not in backend.calls
    assert len(registry) == 0


async def test_inactive_book_is_not_found(registry):
    backend = FakeBackend(book=make_book(is_active=False))
    with pytest.raises(NotFoundError):
        await OrderBootstrap(backend, registry).initialize(BOOK_CODE)


async def test_order_creation_failure_surfaces_network_error(registry):
    backend = FakeBackend()
    backend.failing.add("create_order")
    with pytest.raises(NetworkError):
        await OrderBootstrap(backend, registry).initialize(BOOK_CODE)


async def test_two_roles_named_and_uploaded_enable_avatars(registry):
    bootstrap = OrderBootstrap(FakeBackend(), registry)
    session = await bootstrap.initialize(BOOK_CODE)

    bootstrap.set_name(ORDER_ID, "parent", "Maria")
    bootstrap.set_name(ORDER_ID, "child", "Leo")
    await bootstrap.upload_photo(ORDER_ID, "parent", "parent.jpg", _jpeg_bytes(), "image/jpeg")
    assert not session.form.can_generate_avatars()

    await bootstrap.upload_photo(ORDER_ID, "child", "child.jpg", _jpeg_bytes(), "image/jpeg")
    assert session.form.can_generate_avatars()

    bootstrap.set_name(ORDER_ID, "child", "   ")
    assert not session.form.can_generate_avatars()


async def test_failed_upload_reverts_only_that_role(registry):
    backend = FakeBackend()
    bootstrap = OrderBootstrap(backend, registry)
    session = await bootstrap.initialize(BOOK_CODE)
    await bootstrap.upload_photo(ORDER_ID, "parent", "parent.jpg", _jpeg_bytes(), "image/jpeg")

    backend.failing.add("upload_photo")
    with pytest.raises(NetworkError):
        await bootstrap.upload_photo(ORDER_ID, "child", "child.jpg", _jpeg_bytes(), "image/jpeg")

    assert session.form.photos["parent"].uploaded
    assert "child" not in session.form.photos


async def test_unknown_role_is_rejected(registry):
    bootstrap = OrderBootstrap(FakeBackend(), registry)
    await bootstrap.initialize(BOOK_CODE)
    with pytest.raises(ValidationError):
        bootstrap.set_name(ORDER_ID, "dragon", "Smaug")


async def test_uploaded_photo_keeps_a_small_local_preview(registry):
    bootstrap = OrderBootstrap(FakeBackend(), registry)
    session = await bootstrap.initialize(BOOK_CODE)
    await bootstrap.upload_photo(ORDER_ID, "parent", "parent.jpg", _jpeg_bytes(), "image/jpeg")

    photo = session.form.photos["parent"]
    assert photo.preview_url.startswith("data:image/jpeg;base64,")
    assert photo.photo_url == "https://cdn.example.com/photos/parent.jpg"


def test_preview_of_non_image_is_none():
    assert make_preview_data_url(b"not an image") is None
