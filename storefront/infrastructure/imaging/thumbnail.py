# storefront/infrastructure/imaging/thumbnail.py
import base64
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from storefront.config.settings import settings


def make_preview_data_url(
    content: bytes,
    max_side: Optional[int] = None,
    fmt: str = "jpg",
    quality: int = 80,
) -> Optional[str]:
    """Downscaled preview of an uploaded photo as a data URL, or None if it is not an image."""
    max_side = max_side or settings.THUMBNAIL_MAX_SIDE
    try:
        img = Image.open(BytesIO(content))
        img.load()
    except (UnidentifiedImageError, OSError):
        return None

    w, h = img.size
    m = max(w, h)
    if m > max_side:
        scale = max_side / m
        img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)

    fmt = (fmt or "jpg").lower()
    if fmt in ("jpg", "jpeg"):
        # JPEG can't have alpha
        if img.mode != "RGB":
            img = img.convert("RGB")
        save_kwargs = dict(format="JPEG", quality=quality, optimize=True)
        mime = "image/jpeg"
    else:
        save_kwargs = dict(format="PNG", optimize=True)
        mime = "image/png"

    buf = BytesIO()
    img.save(buf, **save_kwargs)
    img.close()
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:{mime};base64,{encoded}"
