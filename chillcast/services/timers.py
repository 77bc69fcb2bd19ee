"""Per-user countdown timers and push subscriptions."""

from __future__ import annotations

import logging
import math
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable

from ..store import KeyValueStore
from .cooling_model import CoolingModel, CoolingParameters

logger = logging.getLogger(__name__)

TIMER_PREFIX = "timer:"
SUBSCRIPTION_PREFIX = "subscription:"
MS_PER_MINUTE = 60_000


def timer_key(user_id: str) -> str:
    return f"{TIMER_PREFIX}{user_id}"


def subscription_key(user_id: str) -> str:
    return f"{SUBSCRIPTION_PREFIX}{user_id}"


def epoch_ms() -> int:
    return int(time.time() * 1000)


class TimerRequestError(ValueError):
    """A timer cannot be created for the submitted parameters."""


@dataclass
class StoredTimer:
    """Persisted countdown; times are epoch milliseconds."""

    user_id: str
    start_time: int
    expiry_time: int
    target_temp: float
    notification_sent: bool
    task_handle: str
    beverage_name: str | None = None
    delivery_attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredTimer:
        return cls(
            user_id=data["user_id"],
            start_time=int(data["start_time"]),
            expiry_time=int(data["expiry_time"]),
            target_temp=float(data["target_temp"]),
            notification_sent=bool(data.get("notification_sent", False)),
            task_handle=data.get("task_handle", ""),
            beverage_name=data.get("beverage_name"),
            delivery_attempts=int(data.get("delivery_attempts", 0)),
        )


@dataclass
class StoredSubscription:
    user_id: str
    subscription: dict[str, Any]
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredSubscription:
        return cls(
            user_id=data["user_id"],
            subscription=dict(data.get("subscription") or {}),
            created_at=int(data.get("created_at", 0)),
        )


@dataclass
class TimerStatus:
    timer: StoredTimer
    remaining_ms: int
    remaining_minutes: int
    is_expired: bool


class TimerService:
    """Creates, inspects and cancels timers on top of a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        model: CoolingModel | None = None,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.model = model or CoolingModel()
        self.clock = clock

    def create_timer(
        self,
        user_id: str,
        params: CoolingParameters,
        beverage_name: str | None = None,
    ) -> tuple[StoredTimer, int]:
        """Validate *params*, solve the cooling time and persist a timer.

        Returns:
            The stored timer and the cooling time in minutes.

        Raises:
            TimerRequestError: Missing user, invalid parameters, or a target
                that is unreachable or already met.
        """
        if not user_id:
            raise TimerRequestError("User ID is required")

        error = self.model.validate(params)
        if error is not None:
            logger.info("[timer] [%s] validation failed: %s", user_id, error.message)
            raise TimerRequestError(error.message)

        minutes = self.model.solve_cooling_time(params)
        if math.isinf(minutes):
            raise TimerRequestError("Cannot cool to target temperature in this environment")
        if minutes == 0:
            raise TimerRequestError("Already at or below target temperature")

        now = self.clock()
        timer = StoredTimer(
            user_id=user_id,
            start_time=now,
            expiry_time=now + int(minutes) * MS_PER_MINUTE,
            target_temp=params.target_temp,
            notification_sent=False,
            task_handle=uuid.uuid4().hex,
            beverage_name=beverage_name,
        )
        self.store.set(timer_key(user_id), timer.to_dict())
        logger.info(
            "[timer] [%s] created: %d minutes (task %s)", user_id, minutes, timer.task_handle
        )
        return timer, int(minutes)

    def get_timer(self, user_id: str) -> StoredTimer | None:
        data = self.store.get(timer_key(user_id))
        return StoredTimer.from_dict(data) if data else None

    def get_status(self, user_id: str) -> TimerStatus | None:
        """Remaining time for the user's timer, or ``None`` if there is none."""
        timer = self.get_timer(user_id)
        if timer is None:
            return None
        remaining_ms = timer.expiry_time - self.clock()
        return TimerStatus(
            timer=timer,
            remaining_ms=remaining_ms,
            remaining_minutes=max(0, math.ceil(remaining_ms / MS_PER_MINUTE)),
            is_expired=remaining_ms <= 0,
        )

    def _update_if_current(self, timer: StoredTimer, **changes: Any) -> StoredTimer | None:
        """Apply *changes* to the stored timer only if it is still *timer*.

        A timer replaced or cancelled since *timer* was read is left alone.
        """
        current = self.get_timer(timer.user_id)
        if current is None or current.task_handle != timer.task_handle:
            logger.info(
                "[timer] [%s] task %s superseded, not updating", timer.user_id, timer.task_handle
            )
            return None
        for name, value in changes.items():
            setattr(current, name, value)
        self.store.set(timer_key(current.user_id), current.to_dict())
        return current

    def mark_sent(self, timer: StoredTimer) -> bool:
        """Record the notification as sent; ``False`` if *timer* was superseded."""
        updated = self._update_if_current(timer, notification_sent=True)
        if updated is None:
            return False
        timer.notification_sent = True
        return True

    def record_failed_attempt(self, timer: StoredTimer) -> int | None:
        """Bump the delivery attempt count; ``None`` if *timer* was superseded."""
        updated = self._update_if_current(timer, delivery_attempts=timer.delivery_attempts + 1)
        if updated is None:
            return None
        timer.delivery_attempts = updated.delivery_attempts
        return updated.delivery_attempts

    def cancel_timer(self, user_id: str) -> bool:
        deleted = self.store.delete(timer_key(user_id))
        logger.info("[timer] [%s] cancelled (existed=%s)", user_id, deleted)
        return deleted

    def cleanup_timers(self) -> int:
        """Delete every stored timer; returns how many were removed."""
        keys = self.store.keys(TIMER_PREFIX)
        for key in keys:
            self.store.delete(key)
        logger.info("[cleanup] Deleted %d timers", len(keys))
        return len(keys)

    # --- Subscriptions ------------------------------------------------------

    def save_subscription(self, user_id: str, subscription: dict[str, Any]) -> StoredSubscription:
        if not user_id or not subscription:
            raise TimerRequestError("User ID and subscription are required")
        stored = StoredSubscription(
            user_id=user_id, subscription=subscription, created_at=self.clock()
        )
        self.store.set(subscription_key(user_id), stored.to_dict())
        logger.info("[subscription] [%s] saved", user_id)
        return stored

    def get_subscription(self, user_id: str) -> StoredSubscription | None:
        data = self.store.get(subscription_key(user_id))
        return StoredSubscription.from_dict(data) if data else None

    def remove_subscription(self, user_id: str) -> bool:
        deleted = self.store.delete(subscription_key(user_id))
        logger.info("[subscription] [%s] removed (existed=%s)", user_id, deleted)
        return deleted
