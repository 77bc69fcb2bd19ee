"""API tests for chillcast.main using FastAPI's TestClient and an in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import requests
from fastapi.testclient import TestClient

from chillcast.config import Settings
from chillcast.main import app, get_store
from chillcast.services.forecast_projector import ForecastSample
from chillcast.weather import WeatherReading

FREEZER_CAN = {
    "current_temp": 20,
    "target_temp": 2,
    "location": "freezer",
    "volume_ml": 330,
    "vessel_material": "aluminum",
}
START = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _hours(temps: list[float]) -> list[dict]:
    return [
        {"timestamp": (START + timedelta(hours=i)).isoformat(), "ambient_temp": t}
        for i, t in enumerate(temps)
    ]


class TestInfoEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_presets(self, client):
        body = client.get("/v1/presets").json()
        assert [t["label"] for t in body["targets"]][2] == "Perfect"
        assert body["locations"] == {"freezer": -20.0, "fridge": 5.0}
        co2 = next(m for m in body["media"] if m["medium"] == "co2")
        assert co2["ambient_temp"] == -78.5
        assert co2["warning"]


class TestCoolingEndpoints:
    def test_time_in_freezer(self, client):
        body = client.post("/v1/cooling/time", json=FREEZER_CAN).json()
        assert body == {
            "minutes": 50,
            "reachable": True,
            "effective_ambient_temp": -20.0,
            "warning": None,
        }

    def test_explicit_ambient_wins_over_location(self, client):
        payload = {**FREEZER_CAN, "base_ambient_temp": -10}
        body = client.post("/v1/cooling/time", json=payload).json()
        assert body["effective_ambient_temp"] == -10.0
        assert body["minutes"] > 50

    def test_co2_reports_warning(self, client):
        payload = {**FREEZER_CAN, "cooling_medium": "co2"}
        body = client.post("/v1/cooling/time", json=payload).json()
        assert 0 < body["minutes"] < 5
        assert "thermal shock" in body["warning"]

    def test_invalid_parameters_return_400(self, client):
        payload = {**FREEZER_CAN, "location": "fridge", "target_temp": 0}
        response = client.post("/v1/cooling/time", json=payload)
        assert response.status_code == 400
        assert "environment temperature 5" in response.json()["detail"]

    def test_outside_requires_ambient(self, client):
        payload = {**FREEZER_CAN, "location": "outside"}
        assert client.post("/v1/cooling/time", json=payload).status_code == 400

    def test_out_of_range_temperature_is_422(self, client):
        payload = {**FREEZER_CAN, "current_temp": 95}
        assert client.post("/v1/cooling/time", json=payload).status_code == 422

    def test_validate(self, client):
        ok = client.post("/v1/cooling/validate", json=FREEZER_CAN).json()
        assert ok["valid"] is True
        bad = client.post("/v1/cooling/validate", json={**FREEZER_CAN, "volume_ml": 0}).json()
        assert bad["valid"] is False
        assert bad["code"] == "invalid_volume"
        assert bad["message"] == "volume must be positive"

    def test_temperature(self, client):
        payload = {k: v for k, v in FREEZER_CAN.items() if k != "target_temp"}
        start = client.post("/v1/cooling/temperature", json={**payload, "minutes": 0}).json()
        later = client.post("/v1/cooling/temperature", json={**payload, "minutes": 50}).json()
        assert start["temperature"] == 20.0
        assert abs(later["temperature"] - 2.0) <= 1.0


class TestProjectionEndpoints:
    def test_projection_over_supplied_hours(self, client):
        payload = {"current_temp": 20, "target_temp": 2, "hours": _hours([-20.0] * 48)}
        body = client.post("/v1/projection", json=payload).json()
        assert len(body["points"]) == 24
        assert body["points"][0]["beverage_temp"] == 20.0
        assert body["hours_to_target"] == 1
        assert body["freeze_risk_at"] is not None

    def test_empty_forecast(self, client):
        body = client.post("/v1/projection", json={"current_temp": 20, "target_temp": 2}).json()
        assert body == {
            "points": [],
            "target_reached_at": None,
            "hours_to_target": None,
            "freeze_risk_at": None,
        }

    @patch("chillcast.weather.fetch_hourly_forecast")
    def test_auto_projection_fetches_forecast(self, mock_fetch, client):
        mock_fetch.return_value = [
            ForecastSample(START + timedelta(hours=i), 15.0) for i in range(5)
        ]
        payload = {"current_temp": 20, "target_temp": 2, "latitude": 59.9, "longitude": 10.7}
        body = client.post("/v1/projection/auto", json=payload).json()
        assert len(body["points"]) == 5
        assert body["target_reached_at"] is None
        assert mock_fetch.call_args.kwargs["days"] == 7

    @patch("chillcast.weather.fetch_hourly_forecast")
    def test_auto_projection_upstream_failure(self, mock_fetch, client):
        mock_fetch.side_effect = requests.ConnectionError("down")
        payload = {"current_temp": 20, "target_temp": 2, "latitude": 59.9, "longitude": 10.7}
        assert client.post("/v1/projection/auto", json=payload).status_code == 502


class TestWeatherEndpoint:
    @patch("chillcast.weather.fetch_current_temperature")
    def test_current_weather(self, mock_fetch, client):
        mock_fetch.return_value = WeatherReading(3, 59.9, 10.7, "2026-01-01T12:00")
        body = client.get("/v1/weather", params={"latitude": 59.9, "longitude": 10.7}).json()
        assert body["temperature"] == 3

    def test_coordinates_validated(self, client):
        response = client.get("/v1/weather", params={"latitude": 100, "longitude": 10})
        assert response.status_code == 422


class TestTimerEndpoints:
    def test_create_status_cancel(self, client):
        created = client.post("/v1/timers", json={"user_id": "u1", "cooling": FREEZER_CAN})
        assert created.status_code == 200
        body = created.json()
        assert body["cooling_minutes"] == 50
        assert body["expiry_time"] - body["start_time"] == 50 * 60_000

        status = client.get("/v1/timers/u1").json()
        assert status["has_timer"] is True
        assert status["timer"]["remaining_minutes"] in (49, 50)
        assert status["timer"]["is_expired"] is False

        assert client.delete("/v1/timers/u1").json() == {"success": True}
        assert client.get("/v1/timers/u1").json() == {"has_timer": False, "timer": None}

    def test_create_rejects_unreachable_target(self, client):
        cooling = {**FREEZER_CAN, "location": "fridge", "target_temp": 0}
        response = client.post("/v1/timers", json={"user_id": "u1", "cooling": cooling})
        assert response.status_code == 400

    def test_cleanup(self, client):
        assert client.post("/v1/admin/cleanup-timers").json()["deleted"] == 0
        client.post("/v1/timers", json={"user_id": "u1", "cooling": FREEZER_CAN})
        client.post("/v1/timers", json={"user_id": "u2", "cooling": FREEZER_CAN})
        body = client.post("/v1/admin/cleanup-timers").json()
        assert body["deleted"] == 2
        assert body["message"] == "Cleaned up 2 old timers"


class TestSubscriptionEndpoints:
    def test_subscribe_and_unsubscribe(self, client, store):
        payload = {"user_id": "u1", "subscription": {"endpoint": "https://push.example/u1"}}
        assert client.post("/v1/subscriptions", json=payload).json() == {"success": True}
        assert store.get("subscription:u1")["subscription"]["endpoint"].endswith("/u1")
        assert client.delete("/v1/subscriptions/u1").json() == {"success": True}
        assert store.get("subscription:u1") is None

    def test_empty_subscription_rejected(self, client):
        payload = {"user_id": "u1", "subscription": {}}
        assert client.post("/v1/subscriptions", json=payload).status_code == 400


class TestVolumeChecks:
    @pytest.mark.parametrize(
        "path, payload",
        [
            ("/v1/cooling/temperature", {"current_temp": 20, "location": "freezer", "minutes": 5}),
            ("/v1/projection", {"current_temp": 20, "target_temp": 2}),
            (
                "/v1/projection/auto",
                {"current_temp": 20, "target_temp": 2, "latitude": 59.9, "longitude": 10.7},
            ),
        ],
    )
    def test_non_positive_volume_is_400(self, client, path, payload):
        response = client.post(path, json={**payload, "volume_ml": 0})
        assert response.status_code == 400
        assert response.json()["detail"] == "volume must be positive"


class TestPushPublicKey:
    @patch("chillcast.main.get_settings", return_value=Settings(vapid_public_key="BPub"))
    def test_returns_configured_key(self, mock_settings, client):
        assert client.get("/v1/push/public-key").json() == {"public_key": "BPub"}

    @patch("chillcast.main.get_settings", return_value=Settings())
    def test_unconfigured_is_503(self, mock_settings, client):
        assert client.get("/v1/push/public-key").status_code == 503


class TestStoreDependency:
    @pytest.fixture(autouse=True)
    def _fresh_cache(self):
        get_store.cache_clear()
        yield
        get_store.cache_clear()

    @patch("chillcast.main.PostgresKeyValueStore")
    @patch("chillcast.main.get_settings", return_value=Settings(database_url="postgresql://test"))
    def test_store_creates_schema_once(self, mock_settings, mock_store_cls):
        store = get_store()
        assert store is get_store()
        mock_store_cls.assert_called_once_with("postgresql://test")
        mock_store_cls.return_value.init_schema.assert_called_once_with()

    @patch("chillcast.main.PostgresKeyValueStore")
    @patch("chillcast.main.get_settings", return_value=Settings(database_url="postgresql://test"))
    def test_schema_failure_is_retried(self, mock_settings, mock_store_cls):
        mock_store_cls.return_value.init_schema.side_effect = [RuntimeError("db down"), None]
        with pytest.raises(RuntimeError):
            get_store()
        get_store()
        assert mock_store_cls.return_value.init_schema.call_count == 2
