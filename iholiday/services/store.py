"""
In-process store - bookings, wizard sessions, prebooks, webhook logs, leads,
a TTL cache and sliding-window rate limit counters

Everything is guarded by one re-entrant lock; the API runs sync handlers in
a thread pool.
"""

from datetime import datetime, timedelta, timezone
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
import uuid

from iholiday.core.errors import ExpiredError, NotFoundError
from iholiday.models.booking import Booking, WebhookLog

logger = logging.getLogger(__name__)


class BookingStore:
    """
    Thread-safe in-memory repositories

    Expired sessions, prebooks, cache entries and idle rate limit keys are
    swept on writes, at most once per SWEEP_INTERVAL. Expired sessions and
    prebooks are kept for EXPIRED_RETENTION first so late reads still get
    the "expired" answer instead of "not found".
    """

    SWEEP_INTERVAL = 60
    EXPIRED_RETENTION = 3600

    def __init__(self, clock: Callable[[], float] = time.time):
        self._lock = threading.RLock()
        self._clock = clock
        self._bookings: Dict[str, Booking] = {}
        self._sessions: Dict[str, Tuple[Any, float]] = {}
        self._prebooks: Dict[str, Dict[str, Any]] = {}
        self._webhooks: Dict[Tuple[str, str], WebhookLog] = {}
        self._leads: List[Dict[str, Any]] = []
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._hits: Dict[str, Tuple[List[float], int]] = {}
        self._last_sweep = 0.0

    def now(self) -> float:
        return self._clock()

    def utcnow(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _sweep(self) -> None:
        """Drop entries nothing can use any more; caller holds the lock"""
        now = self.now()
        if now - self._last_sweep < self.SWEEP_INTERVAL:
            return
        self._last_sweep = now
        stale = now - self.EXPIRED_RETENTION

        self._sessions = {k: entry for k, entry in self._sessions.items() if entry[1] > stale}
        self._prebooks = {
            k: prebook for k, prebook in self._prebooks.items()
            if datetime.fromisoformat(prebook["expiresAt"]).timestamp() > stale
        }
        self._cache = {k: entry for k, entry in self._cache.items() if entry[1] > now}
        self._hits = {
            k: (hits, window) for k, (hits, window) in self._hits.items()
            if hits and now - hits[-1] < window
        }

    # Bookings

    def save_booking(self, booking: Booking) -> Booking:
        with self._lock:
            booking.touch()
            self._bookings[booking.id] = booking
        return booking

    def get_booking(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def list_bookings(self, booking_type: Any = None) -> List[Booking]:
        with self._lock:
            return [b for b in self._bookings.values() if booking_type is None or b.type == booking_type]

    def find_booking(self, **criteria: Any) -> Optional[Booking]:
        """First booking whose attributes equal all given criteria"""
        with self._lock:
            for booking in self._bookings.values():
                if all(getattr(booking, key, None) == value for key, value in criteria.items()):
                    return booking
        return None

    # Wizard sessions

    def save_session(self, session_id: str, session: Any, ttl_seconds: int) -> None:
        with self._lock:
            self._sweep()
            self._sessions[session_id] = (session, self.now() + ttl_seconds)

    def get_session(self, session_id: str) -> Any:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                raise NotFoundError(f"Session {session_id} not found")
            session, expires_at = entry
            if self.now() >= expires_at:
                del self._sessions[session_id]
                raise ExpiredError("Booking session has expired. Please search again.")
        return session

    # Hotel prebooks

    def create_prebook(self, data: Dict[str, Any], ttl_minutes: int) -> Dict[str, Any]:
        prebook = dict(data)
        prebook["id"] = f"PB{uuid.uuid4().hex[:10].upper()}"
        prebook["status"] = "verified"
        prebook["expiresAt"] = (self.utcnow() + timedelta(minutes=ttl_minutes)).isoformat()
        with self._lock:
            self._sweep()
            self._prebooks[prebook["id"]] = prebook
        return prebook

    def get_prebook(self, prebook_id: str, require_live: bool = True) -> Dict[str, Any]:
        with self._lock:
            prebook = self._prebooks.get(prebook_id)
        if prebook is None:
            raise NotFoundError(f"Prebook {prebook_id} not found")
        if require_live:
            if prebook["status"] != "verified":
                raise ExpiredError(f"Prebook is already {prebook['status']}.")
            if self.utcnow() >= datetime.fromisoformat(prebook["expiresAt"]):
                raise ExpiredError("Prebook has expired. Please search again.")
        return prebook

    def update_prebook(self, prebook_id: str, **changes: Any) -> Dict[str, Any]:
        with self._lock:
            prebook = self._prebooks.get(prebook_id)
            if prebook is None:
                raise NotFoundError(f"Prebook {prebook_id} not found")
            prebook.update(changes)
        return prebook

    # Webhook idempotency log

    def get_webhook_log(self, payment_id: str, event: str) -> Optional[WebhookLog]:
        with self._lock:
            return self._webhooks.get((payment_id, event))

    def save_webhook_log(self, log: WebhookLog) -> WebhookLog:
        with self._lock:
            self._webhooks[(log.payment_id, log.event)] = log
        return log

    # Leads

    def add_lead(self, lead: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            lead = dict(lead)
            lead["id"] = len(self._leads) + 1
            lead["created_at"] = self.utcnow().isoformat()
            self._leads.append(lead)
        return lead

    def leads(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._leads)

    # TTL cache

    def cache_get(self, key: str) -> Any:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self.now() >= expires_at:
                del self._cache[key]
                return None
            return value

    def cache_set(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            self._sweep()
            self._cache[key] = (value, self.now() + ttl_seconds)

    def remember(self, key: str, ttl_seconds: int, loader: Callable[[], Any]) -> Any:
        """Return the cached value or load, cache and return it; empty results are not cached"""
        cached = self.cache_get(key)
        if cached is not None:
            return cached
        value = loader()
        if value:
            self.cache_set(key, value, ttl_seconds)
        return value

    # Rate limiting

    def hit(self, key: str, limit: int, window_seconds: int) -> Tuple[bool, int]:
        """
        Register one attempt for key

        Returns (allowed, retry_after_seconds). Rejected attempts are not counted.
        """
        now = self.now()
        with self._lock:
            self._sweep()
            hits = [t for t in self._hits.get(key, ([], window_seconds))[0] if now - t < window_seconds]
            if len(hits) >= limit:
                self._hits[key] = (hits, window_seconds)
                retry_after = int(window_seconds - (now - hits[0])) + 1
                return False, max(1, retry_after)
            hits.append(now)
            self._hits[key] = (hits, window_seconds)
        return True, 0


_store: Optional[BookingStore] = None


def get_store() -> BookingStore:
    """Get singleton store"""
    global _store
    if _store is None:
        _store = BookingStore()
    return _store


def reset_store(clock: Callable[[], float] = time.time) -> BookingStore:
    """Replace the store (tests)"""
    global _store
    _store = BookingStore(clock)
    return _store
