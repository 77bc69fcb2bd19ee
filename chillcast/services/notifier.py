"""Web Push delivery to browser push subscriptions (VAPID-signed, encrypted)."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import requests
from pywebpush import WebPushException, webpush
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
PUSH_TTL_SECONDS = 3600

_RETRY_CONFIG = Retry(
    total=3,
    backoff_factor=1.5,
    status_forcelist=[429, 500, 502, 503, 504],
    allowed_methods=["POST"],
    raise_on_status=False,
)


class SubscriptionGoneError(Exception):
    """The push service reports the subscription no longer exists."""

    def __init__(self, endpoint: str, status_code: int) -> None:
        super().__init__(f"Subscription endpoint {endpoint} returned {status_code}")
        self.endpoint = endpoint
        self.status_code = status_code


class Notifier(Protocol):
    def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None: ...


def build_ready_payload(target_temp: float, now_ms: int) -> dict[str, Any]:
    """Notification body announcing that the drink reached *target_temp*."""
    return {
        "title": "Your drink is ready!",
        "message": f"Your drink has reached {target_temp:g}°C - perfect drinking temperature!",
        "timestamp": now_ms,
    }


def _build_session() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=_RETRY_CONFIG)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class WebPushNotifier:
    """Sends payloads to ``PushSubscription`` objects via ``pywebpush``.

    A subscription is the browser's JSON form: ``endpoint`` plus
    ``keys.p256dh`` and ``keys.auth``.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not vapid_private_key:
            raise ValueError("vapid_private_key must not be empty")
        if not vapid_subject:
            raise ValueError("vapid_subject must not be empty")
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.timeout_seconds = timeout_seconds
        self.session = _build_session()

    def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None:
        """Encrypt and deliver *payload*.

        Raises:
            SubscriptionGoneError: Push service answered 404 or 410.
            ValueError: Subscription lacks an endpoint or encryption keys.
            WebPushException: Any other rejection after retries.
        """
        endpoint = subscription.get("endpoint")
        if not endpoint:
            raise ValueError("Subscription has no endpoint")
        keys = subscription.get("keys") or {}
        if not keys.get("p256dh") or not keys.get("auth"):
            raise ValueError("Subscription is missing p256dh/auth keys")

        try:
            response = webpush(
                subscription_info=subscription,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                # webpush() writes aud/exp into the claims dict
                vapid_claims={"sub": self.vapid_subject},
                ttl=PUSH_TTL_SECONDS,
                timeout=self.timeout_seconds,
                requests_session=self.session,
            )
        except WebPushException as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            if status_code in (404, 410):
                raise SubscriptionGoneError(endpoint, status_code) from exc
            logger.error("Push rejected by %s (%s): %s", endpoint, status_code, exc)
            raise
        logger.info("Push accepted by %s (%s)", endpoint, getattr(response, "status_code", "?"))
