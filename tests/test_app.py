from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api import get_sensors, get_store
from app.main import create_app
from datastore.realtime_db import MockRealtimeDatabase
from models.records import SensorDescriptor

SENSORS = (
    SensorDescriptor(key="temperature", serial="1-1", name="Air Temperature", unit="°C"),
    SensorDescriptor(key="humidity", serial="1-2", name="Relative Humidity", unit="%"),
)


@pytest.fixture
def database() -> MockRealtimeDatabase:
    db = MockRealtimeDatabase(name="test")
    db.update(
        {
            **{
                f"sensorData/temperature/data/{i}": {"timestamp": 1000 * (i + 1), "value": 20.0 + i}
                for i in range(3)
            },
            "sensorData/temperature/recordCount": 3,
            "sensorData/temperature/lastTimestamp": 3000,
            "sensorMeta/temperature": {"lastTimestamp": 3000, "latestValue": 22.0, "lastUpdated": 5000},
        }
    )
    return db


@pytest.fixture
def api_client(database: MockRealtimeDatabase) -> Iterator[TestClient]:
    app = create_app()
    app.dependency_overrides[get_store] = lambda: database
    app.dependency_overrides[get_sensors] = lambda: SENSORS
    with TestClient(app) as client:
        yield client


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_sensors_includes_watermarks(api_client: TestClient) -> None:
    response = api_client.get("/sensors")

    assert response.status_code == 200
    body = {row["key"]: row for row in response.json()}
    assert body["temperature"]["record_count"] == 3
    assert body["temperature"]["watermark"]["last_timestamp"] == 3000
    assert body["temperature"]["watermark"]["latest_value"] == 22.0
    assert body["humidity"]["record_count"] == 0
    assert body["humidity"]["watermark"]["latest_value"] is None


def test_get_unknown_sensor_returns_404(api_client: TestClient) -> None:
    response = api_client.get("/sensors/pressure")

    assert response.status_code == 404


def test_readings_returns_log_tail(api_client: TestClient) -> None:
    response = api_client.get("/sensors/temperature/readings", params={"limit": 2})

    assert response.status_code == 200
    payload = response.json()
    assert payload["record_count"] == 3
    assert payload["unit"] == "°C"
    assert payload["readings"] == [
        {"timestamp": 2000, "value": 21.0},
        {"timestamp": 3000, "value": 22.0},
    ]


def test_metadata_missing_until_first_run(api_client: TestClient, database: MockRealtimeDatabase) -> None:
    assert api_client.get("/metadata").status_code == 404

    database.set(
        "weatherData/metadata",
        {
            "timeRange": {"startTime": 1, "endTime": 2},
            "fetchedAt": 3,
            "sensorCount": 2,
            "successfulSensors": 1,
            "totalNewRecords": 4,
            "latestValues": {"temperature": 22.0},
            "failedSensors": ["humidity"],
        },
    )
    response = api_client.get("/metadata")

    assert response.status_code == 200
    payload = response.json()
    assert payload["timeRange"] == {"startTime": 1, "endTime": 2}
    assert payload["totalNewRecords"] == 4
    assert payload["failedSensors"] == ["humidity"]


def test_history_newest_first(api_client: TestClient, database: MockRealtimeDatabase) -> None:
    database.update(
        {
            "weatherHistory/100": {"timestamp": 100, "values": {"temperature": 1.0}},
            "weatherHistory/300": {"timestamp": 300, "values": {"temperature": 3.0}},
            "weatherHistory/200": {"timestamp": 200, "values": {}},
        }
    )

    response = api_client.get("/history", params={"limit": 2})

    assert response.status_code == 200
    assert [entry["timestamp"] for entry in response.json()] == [300, 200]
