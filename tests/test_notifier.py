"""Tests for chillcast.services.notifier (pywebpush mocked, no network calls)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from chillcast.services.notifier import (
    PUSH_TTL_SECONDS,
    SubscriptionGoneError,
    WebPushNotifier,
    build_ready_payload,
)

SUBSCRIPTION = {
    "endpoint": "https://push.example/u1",
    "keys": {"p256dh": "BPub", "auth": "secret"},
}


def _notifier() -> WebPushNotifier:
    return WebPushNotifier("private-key", "mailto:ops@chillcast.test", timeout_seconds=3)


def _rejection(status_code: int) -> WebPushException:
    response = MagicMock()
    response.status_code = status_code
    return WebPushException(f"Push failed: {status_code}", response=response)


def test_ready_payload():
    payload = build_ready_payload(2.0, 123)
    assert payload["title"] == "Your drink is ready!"
    assert "2°C" in payload["message"]
    assert payload["timestamp"] == 123


@patch("chillcast.services.notifier.webpush")
def test_sends_signed_encrypted_push(mock_webpush):
    notifier = _notifier()
    notifier.send(SUBSCRIPTION, {"title": "t"})

    kwargs = mock_webpush.call_args.kwargs
    assert kwargs["subscription_info"] == SUBSCRIPTION
    assert json.loads(kwargs["data"]) == {"title": "t"}
    assert kwargs["vapid_private_key"] == "private-key"
    assert kwargs["vapid_claims"] == {"sub": "mailto:ops@chillcast.test"}
    assert kwargs["ttl"] == PUSH_TTL_SECONDS
    assert kwargs["timeout"] == 3
    assert kwargs["requests_session"] is notifier.session


@patch("chillcast.services.notifier.webpush")
def test_claims_are_fresh_per_send(mock_webpush):
    notifier = _notifier()
    notifier.send(SUBSCRIPTION, {})
    mock_webpush.call_args.kwargs["vapid_claims"]["aud"] = "https://push.example"
    notifier.send(SUBSCRIPTION, {})
    assert mock_webpush.call_args.kwargs["vapid_claims"] == {"sub": "mailto:ops@chillcast.test"}


@pytest.mark.parametrize("status_code", [404, 410])
@patch("chillcast.services.notifier.webpush")
def test_gone_subscription(mock_webpush, status_code):
    mock_webpush.side_effect = _rejection(status_code)
    with pytest.raises(SubscriptionGoneError) as excinfo:
        _notifier().send(SUBSCRIPTION, {})
    assert excinfo.value.status_code == status_code
    assert excinfo.value.endpoint == SUBSCRIPTION["endpoint"]


@pytest.mark.parametrize("status_code", [400, 403, 500])
@patch("chillcast.services.notifier.webpush")
def test_other_rejections_propagate(mock_webpush, status_code):
    mock_webpush.side_effect = _rejection(status_code)
    with pytest.raises(WebPushException):
        _notifier().send(SUBSCRIPTION, {})


@patch("chillcast.services.notifier.webpush")
def test_rejection_without_response_propagates(mock_webpush):
    mock_webpush.side_effect = WebPushException("no response")
    with pytest.raises(WebPushException):
        _notifier().send(SUBSCRIPTION, {})


@patch("chillcast.services.notifier.webpush")
def test_missing_endpoint_or_keys(mock_webpush):
    notifier = _notifier()
    with pytest.raises(ValueError, match="endpoint"):
        notifier.send({}, {})
    with pytest.raises(ValueError, match="keys"):
        notifier.send({"endpoint": "https://push.example/u1"}, {})
    mock_webpush.assert_not_called()


def test_vapid_settings_required():
    with pytest.raises(ValueError):
        WebPushNotifier("", "mailto:ops@chillcast.test")
    with pytest.raises(ValueError):
        WebPushNotifier("private-key", "")
