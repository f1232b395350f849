"""Monthly quota for enhanced extraction."""

from datetime import date, datetime, UTC
import logging
import threading
from typing import Optional
import weakref

from dateutil.relativedelta import relativedelta

from finledger.database.base import Database
from finledger.domain.entities import QuotaState
from finledger.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_LIMIT = 20


def period_key(today: Optional[date] = None) -> str:
    """Return the quota period for a day, e.g. '2024-01'."""
    today = today or datetime.now(UTC).date()
    return f"{today.year:04d}-{today.month:02d}"


def period_reset_date(key: str) -> date:
    """Return the first day of the period after ``key``."""
    year, month = (int(part) for part in key.split("-"))
    return date(year, month, 1) + relativedelta(months=1)


class QuotaService:
    """Service for checking and consuming an owner's enhanced extraction quota."""

    # Entries vanish once no escalation holds the lock
    _locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, db: Database, default_limit: int = DEFAULT_MONTHLY_LIMIT, clock=None):
        """Initialize quota service.

        Args:
            db: Database instance
            default_limit: Limit for owners without a stored limit
            clock: Callable returning today's date, for tests
        """
        self.db = db
        self.default_limit = default_limit
        self.clock = clock or (lambda: datetime.now(UTC).date())

    @classmethod
    def owner_lock(cls, owner_id: str) -> threading.Lock:
        """Return the in-process lock serializing escalations for an owner."""
        with cls._locks_guard:
            lock = cls._locks.get(owner_id)
            if lock is None:
                lock = threading.Lock()
                cls._locks[owner_id] = lock
            return lock

    def current_period(self) -> str:
        return period_key(self.clock())

    def _state(self, owner_id: str, key: str, used: int, limit: int) -> QuotaState:
        return QuotaState(
            owner_id=owner_id,
            period_key=key,
            used=used,
            limit=limit,
            reset_date=period_reset_date(key),
        )

    def check_quota(self, owner_id: str) -> QuotaState:
        """Return the owner's quota for the current period without changing it."""
        key = self.current_period()
        usage = self.db.get_quota_usage(owner_id, key)
        if usage is None:
            limit = self.db.get_latest_quota_limit(owner_id) or self.default_limit
            return self._state(owner_id, key, 0, limit)
        used, limit = usage
        return self._state(owner_id, key, used, limit)

    def increment_usage(self, owner_id: str) -> Optional[QuotaState]:
        """Consume one use of the owner's quota.

        Returns:
            The new quota state, or None if the limit was already reached
        """
        key = self.current_period()
        used = self.db.try_increment_quota(owner_id, key, self.default_limit)
        if used is None:
            logger.warning("Quota increment refused for owner %s in %s", owner_id, key)
            return None
        state = self.check_quota(owner_id)
        logger.info("Owner %s used %d/%d enhanced extractions in %s", owner_id, state.used, state.limit, key)
        return state

    def set_limit(self, owner_id: str, limit: int) -> QuotaState:
        """Set the owner's limit for the current period.

        Raises:
            ValidationError: If limit is not positive
        """
        if limit <= 0:
            raise ValidationError("Quota limit must be greater than 0")
        self.db.set_quota_limit(owner_id, self.current_period(), limit, self.default_limit)
        return self.check_quota(owner_id)

    def reset_usage(self, owner_id: str, key: Optional[str] = None) -> QuotaState:
        """Reset the owner's usage for a period (current period by default)."""
        key = key or self.current_period()
        self.db.reset_quota_usage(owner_id, key)
        return self.check_quota(owner_id)

    def usage_history(self, owner_id: str, months: int = 6) -> list[QuotaState]:
        """Return quota states for the last ``months`` periods, newest first."""
        stored = self.db.list_quota_usage(owner_id)
        today = self.clock()
        current = self.check_quota(owner_id)
        history = []
        for offset in range(months):
            key = period_key(today - relativedelta(months=offset))
            used, limit = stored.get(key, (0, current.limit))
            history.append(self._state(owner_id, key, used, limit))
        return history
