"""Sleep-until-due notification delivery driven by persisted timers.

Timers survive restarts because all state lives in the store: a timer is
due once ``expiry_time`` has passed and stays due until ``notification_sent``
is recorded, so a failed delivery is retried on the next poll until the
timer's attempt limit is used up.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

from .notifier import Notifier, SubscriptionGoneError, build_ready_payload
from .timers import TIMER_PREFIX, StoredTimer, TimerService

logger = logging.getLogger(__name__)


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    CANCELLED = "cancelled"
    ALREADY_SENT = "already_sent"
    NO_SUBSCRIPTION = "no_subscription"
    SUBSCRIPTION_GONE = "subscription_gone"
    SUPERSEDED = "superseded"
    GAVE_UP = "gave_up"


class NotificationWorker:
    """Delivers at most one ready-notification per timer."""

    def __init__(
        self,
        timers: TimerService,
        notifier: Notifier,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = 5,
    ) -> None:
        self.timers = timers
        self.notifier = notifier
        self.sleep = sleep
        self.max_attempts = max_attempts

    def deliver(self, user_id: str) -> DeliveryOutcome:
        """Send the ready notification for *user_id*'s timer.

        Raises:
            Exception: Any delivery failure other than a gone subscription,
                leaving the timer unsent for a later retry. Once *max_attempts*
                failures are recorded the timer is closed as GAVE_UP instead.
        """
        timer = self.timers.get_timer(user_id)
        if timer is None:
            logger.info("[deliver] [%s] timer cancelled before notification", user_id)
            return DeliveryOutcome.CANCELLED
        if timer.notification_sent:
            logger.info("[deliver] [%s] notification already sent", user_id)
            return DeliveryOutcome.ALREADY_SENT

        stored = self.timers.get_subscription(user_id)
        if stored is None or not stored.subscription:
            logger.info("[deliver] [%s] no push subscription", user_id)
            return self._close(timer, DeliveryOutcome.NO_SUBSCRIPTION)

        payload = build_ready_payload(timer.target_temp, self.timers.clock())
        try:
            self.notifier.send(stored.subscription, payload)
        except SubscriptionGoneError as exc:
            logger.warning(
                "[deliver] [%s] removing invalid subscription (%d)", user_id, exc.status_code
            )
            self.timers.remove_subscription(user_id)
            return self._close(timer, DeliveryOutcome.SUBSCRIPTION_GONE)
        except Exception:
            attempts = self.timers.record_failed_attempt(timer)
            if attempts is None:
                return DeliveryOutcome.SUPERSEDED
            if attempts < self.max_attempts:
                raise
            logger.exception(
                "[deliver] [%s] giving up after %d failed attempts", user_id, attempts
            )
            return self._close(timer, DeliveryOutcome.GAVE_UP)

        logger.info("[deliver] [%s] notification sent", user_id)
        return self._close(timer, DeliveryOutcome.SENT)

    def _close(self, timer: StoredTimer, outcome: DeliveryOutcome) -> DeliveryOutcome:
        if not self.timers.mark_sent(timer):
            return DeliveryOutcome.SUPERSEDED
        return outcome

    def due_user_ids(self) -> list[str]:
        """Users whose timers have expired without a notification."""
        now = self.timers.clock()
        due: list[str] = []
        for key in self.timers.store.keys(TIMER_PREFIX):
            user_id = key[len(TIMER_PREFIX):]
            timer = self.timers.get_timer(user_id)
            if timer is not None and not timer.notification_sent and timer.expiry_time <= now:
                due.append(user_id)
        return due

    def run_due(self) -> tuple[int, int]:
        """Deliver every due timer. Returns ``(delivered, failures)``."""
        delivered = failures = 0
        for user_id in self.due_user_ids():
            try:
                outcome = self.deliver(user_id)
            except Exception:  # noqa: BLE001
                logger.exception("[deliver] [%s] failed, will retry", user_id)
                failures += 1
                continue
            if outcome is DeliveryOutcome.GAVE_UP:
                failures += 1
            else:
                delivered += 1
        if delivered or failures:
            logger.info("Delivery pass: %d delivered, %d failed", delivered, failures)
        return delivered, failures

    def run_forever(self, poll_seconds: float, max_cycles: int | None = None) -> None:
        """Poll for due timers until interrupted or *max_cycles* passes ran."""
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_due()
            cycles += 1
            if max_cycles is None or cycles < max_cycles:
                self.sleep(poll_seconds)
