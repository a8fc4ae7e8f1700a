# storefront/domain/session.py
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from storefront.config.settings import settings
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.domain.models import Book, OrderPhase

P = OrderPhase

# Failed backend calls step back so the user can retry the same action.
ALLOWED_TRANSITIONS: Dict[OrderPhase, set] = {
    P.DRAFT: {P.AVATARS_REQUESTED},
    P.AVATARS_REQUESTED: {P.AVATARS_READY, P.DRAFT},
    P.AVATARS_READY: {P.PREVIEW_REQUESTED, P.AVATARS_REQUESTED},
    P.PREVIEW_REQUESTED: {P.PREVIEW_READY, P.AVATARS_READY},
    P.PREVIEW_READY: {P.PAID, P.UNPAID_LOCKED},
    P.UNPAID_LOCKED: {P.PAID},
    P.PAID: {P.FULL_BOOK_REQUESTED},
    P.FULL_BOOK_REQUESTED: {P.FULL_BOOK_READY, P.PAID},
    P.FULL_BOOK_READY: set(),
}


@dataclass
class UploadedPhoto:
    filename: str
    content_type: str
    preview_url: Optional[str] = None
    uploaded: bool = False
    photo_url: str = ""


@dataclass
class CustomizationForm:
    roles: List[str]
    names: Dict[str, str] = field(default_factory=dict)
    photos: Dict[str, UploadedPhoto] = field(default_factory=dict)

    def _check_role(self, role: str) -> None:
        if role not in self.roles:
            raise ValidationError(f"Unknown character role '{role}'. Expected one of: {self.roles}")

    def set_name(self, role: str, name: str) -> None:
        self._check_role(role)
        self.names[role] = name or ""

    def begin_upload(self, role: str, photo: UploadedPhoto) -> None:
        self._check_role(role)
        photo.uploaded = False
        self.photos[role] = photo

    def confirm_upload(self, role: str, photo_url: str = "") -> None:
        self._check_role(role)
        photo = self.photos.get(role)
        if photo is None:
            raise ValidationError(f"No photo selected for role '{role}'")
        photo.uploaded = True
        photo.photo_url = photo_url

    def revert_upload(self, role: str) -> None:
        self.photos.pop(role, None)

    def names_complete(self) -> bool:
        return all((self.names.get(role) or "").strip() for role in self.roles)

    def photos_complete(self) -> bool:
        return all(self.photos.get(role) is not None and self.photos[role].uploaded for role in self.roles)

    def can_generate_avatars(self) -> bool:
        return self.names_complete() and self.photos_complete()

    def to_dict(self) -> Dict:
        return {
            "roles": list(self.roles),
            "names": {role: self.names.get(role, "") for role in self.roles},
            "uploads": {
                role: {
                    "uploaded": bool(self.photos.get(role) and self.photos[role].uploaded),
                    "preview_url": self.photos[role].preview_url if role in self.photos else None,
                }
                for role in self.roles
            },
            "can_generate_avatars": self.can_generate_avatars(),
        }


@dataclass
class OrderSession:
    order_id: str
    book: Book
    form: CustomizationForm
    phase: OrderPhase = OrderPhase.DRAFT
    avatars: Dict[str, str] = field(default_factory=dict)
    progress: int = 0

    def advance(self, target: OrderPhase) -> None:
        if target == self.phase:
            return
        if target not in ALLOWED_TRANSITIONS[self.phase]:
            raise ValidationError(
                f"Order {self.order_id} cannot move from {self.phase.value} to {target.value}"
            )
        self.phase = target

    def record_progress(self, value: int) -> int:
        """Progress never moves backwards within a session."""
        value = max(0, min(100, int(value)))
        if value > self.progress:
            self.progress = value
        return self.progress


class OrderSessionRegistry:
    """
    In-process order sessions keyed by order id. Nothing is persisted.

    Sessions idle for longer than ``ttl_seconds`` are dropped, and once
    ``max_entries`` is reached the least recently used session is evicted.
    An evicted order is adopted again from the backend on its next page view.
    """

    def __init__(self, max_entries: Optional[int] = None, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries or settings.SESSION_MAX_ENTRIES
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        self._clock = clock
        self._sessions: "OrderedDict[str, Tuple[OrderSession, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        expired = [oid for oid, (_, seen) in self._sessions.items() if now - seen > self.ttl_seconds]
        for oid in expired:
            del self._sessions[oid]
        while len(self._sessions) > self.max_entries:
            self._sessions.popitem(last=False)

    def add(self, session: OrderSession) -> OrderSession:
        with self._lock:
            now = self._clock()
            self._sessions[session.order_id] = (session, now)
            self._sessions.move_to_end(session.order_id)
            self._prune(now)
        return session

    def find(self, order_id: str) -> Optional[OrderSession]:
        with self._lock:
            now = self._clock()
            self._prune(now)
            entry = self._sessions.get(order_id)
            if entry is None:
                return None
            self._sessions[order_id] = (entry[0], now)
            self._sessions.move_to_end(order_id)
            return entry[0]

    def get(self, order_id: str) -> OrderSession:
        session = self.find(order_id)
        if session is None:
            raise NotFoundError(f"No customization session for order {order_id}")
        return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
