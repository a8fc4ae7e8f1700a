from pydantic import BaseModel
from typing import Any, Optional

class CreateOrderBody(BaseModel):
    customerEmail: Optional[str] = None

class CharacterNameBody(BaseModel):
    name: str = ""

# Amounts stay loosely typed so a bad value is answered with the storefront's
# own 400 message instead of a schema error.
class CheckoutBody(BaseModel):
    bookTitle: str = ""
    bookDescription: Optional[str] = ""
    priceInCents: Any = None
    bookId: str = ""

class PreviewCheckoutBody(BaseModel):
    orderId: str = ""
    bookTitle: Optional[str] = ""
    bookCode: Optional[str] = ""
    priceInCents: Any = None
