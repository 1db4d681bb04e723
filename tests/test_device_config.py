import asyncio
import json

import pytest

from loginwatch.coordinator.device_config import DeviceConfig, DeviceConfigStore, generate_device_id
from loginwatch.errors import ConfigLockedError


def test_generated_ids_have_prefix_and_length():
    device_id = generate_device_id()
    assert device_id.startswith("device_")
    assert len(device_id) == len("device_") + 22
    assert device_id != generate_device_id()


@pytest.mark.asyncio
async def test_first_load_generates_and_persists_id(tmp_path):
    path = tmp_path / "device_config.json"
    store = DeviceConfigStore(path)

    config = await store.load()

    assert config.device_id.startswith("device_")
    assert config.enabled is True
    assert config.api_endpoint == "http://localhost:8080"
    record = json.loads(path.read_text())
    assert record["id"] == config.device_id
    assert set(record) == {"api", "id", "enabled", "token", "locked", "filters"}

    again = await DeviceConfigStore(path).load()
    assert again.device_id == config.device_id


@pytest.mark.asyncio
async def test_concurrent_first_loads_agree_on_one_id(tmp_path):
    store = DeviceConfigStore(tmp_path / "device_config.json")

    configs = await asyncio.gather(*(store.load() for _ in range(10)))

    assert len({config.device_id for config in configs}) == 1


@pytest.mark.asyncio
async def test_legacy_device_id_is_migrated(tmp_path):
    path = tmp_path / "device_config.json"
    path.write_text(json.dumps({"deviceId": "device_legacy", "api": "https://collector.example"}))

    config = await DeviceConfigStore(path).load()

    assert config.device_id == "device_legacy"
    assert config.api_endpoint == "https://collector.example"
    record = json.loads(path.read_text())
    assert record["id"] == "device_legacy"
    assert "deviceId" not in record


@pytest.mark.asyncio
async def test_malformed_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "device_config.json"
    path.write_text("{not json")

    config = await DeviceConfigStore(path).load()

    assert config.device_id.startswith("device_")
    assert json.loads(path.read_text())["id"] == config.device_id


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(tmp_path):
    store = DeviceConfigStore(tmp_path / "device_config.json")
    original = await store.load()

    updated = await store.update(api_endpoint="https://collector.example", auth_token="secret")

    assert updated.device_id == original.device_id
    assert updated.api_endpoint == "https://collector.example"
    assert updated.auth_token == "secret"
    assert (await store.load()).auth_token == "secret"


@pytest.mark.asyncio
async def test_locked_config_rejects_updates(tmp_path):
    path = tmp_path / "device_config.json"
    store = DeviceConfigStore(path)
    await store.save(DeviceConfig(device_id="device_x", locked=True))

    with pytest.raises(ConfigLockedError):
        await store.update(enabled=False)
    assert (await store.load()).enabled is True


def test_filters_match_by_substring():
    config = DeviceConfig(username_filters=["@corp.example", "admin"])

    assert config.matches_filters("alice@corp.example")
    assert config.matches_filters("sysadmin")
    assert not config.matches_filters("alice@gmail.com")
    # Matching is case-sensitive
    assert not config.matches_filters("ALICE@CORP.EXAMPLE")
    assert DeviceConfig().matches_filters("anyone")


def test_from_record_ignores_non_list_filters():
    config = DeviceConfig.from_record({"id": "device_a", "filters": "admin"})
    assert config.username_filters == []
