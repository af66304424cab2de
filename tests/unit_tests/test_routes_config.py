"""Tests for the runtime configuration endpoints and settings helpers."""

import pytest

from datachef_api.settings import Settings
from tests.consts import API_BASE

CONFIG_URL = f"{API_BASE}/config"


def test_get_config_masks_secrets(client):
    response = client.get(CONFIG_URL)

    assert response.status_code == 200
    data = response.json()
    assert data["storageBucket"] == "data-chef-test"
    assert data["storageAccessKey"] == "****"
    assert data["storageSecretKey"] == "****"
    assert "databaseUrl" not in data


def test_update_config_rebuilds_storage(app, client):
    response = client.put(CONFIG_URL, json={"storageBucket": "other-bucket", "sparkDriverMemory": "4g"})

    assert response.status_code == 200
    assert response.json()["storageBucket"] == "other-bucket"
    assert response.json()["sparkDriverMemory"] == "4g"
    assert app.state.storage.bucket == "other-bucket"
    assert app.state.orchestrator.storage is app.state.storage
    assert app.state.pipe_manager.storage is app.state.storage
    assert app.state.bridge.settings.spark_driver_memory == "4g"


def test_update_config_rejects_unknown_fields(client):
    response = client.put(CONFIG_URL, json={"databaseUrl": "postgresql://elsewhere"})

    assert response.status_code == 422


def test_update_config_rejects_invalid_values(client):
    response = client.put(CONFIG_URL, json={"storagePort": 0})

    assert response.status_code == 422


class TestSettings:
    def test_connection_blob(self):
        settings = Settings(database_url=None, storage_endpoint="minio", storage_port=9100, iceberg_catalog="lake")

        blob = settings.connection_blob()

        assert blob["minio"]["endpoint"] == "minio"
        assert blob["minio"]["port"] == 9100
        assert blob["minio"]["defaultBucket"] == settings.storage_bucket
        assert blob["iceberg"] == {"warehouse": settings.iceberg_warehouse, "catalog": "lake"}
        assert blob["spark"]["masterUrl"] == "local[*]"

    def test_with_updates_rejects_startup_only_fields(self):
        with pytest.raises(ValueError, match="database_url"):
            Settings(database_url=None).with_updates({"database_url": "postgresql://x"})

    def test_with_updates_returns_new_settings(self):
        settings = Settings(database_url=None)

        updated = settings.with_updates({"storage_port": 9200})

        assert updated.storage_port == 9200
        assert settings.storage_port == 9000
