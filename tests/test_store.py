import json

import pytest

from hms_scheduler.store import InMemoryRecordStore, JsonFileRecordStore, appointments_key


@pytest.mark.asyncio
async def test_get_missing_key(store):
    """Test that an absent key reads as None."""
    assert await store.get("nothing") is None


@pytest.mark.asyncio
async def test_set_then_get(store):
    """Test a simple write and read."""
    await store.set(appointments_key("john@example.com"), [{"id": 1}])

    assert await store.get("appointments_john@example.com") == [{"id": 1}]


@pytest.mark.asyncio
async def test_values_are_copies(store):
    """Test that mutating a loaded value does not change the store."""
    original = {"items": [1, 2]}
    await store.set("k", original)
    original["items"].append(3)

    loaded = await store.get("k")
    loaded["items"].append(4)

    assert await store.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_delete(store):
    """Test deleting present and absent keys."""
    await store.set("k", 1)
    await store.delete("k")
    await store.delete("never-set")

    assert await store.get("k") is None


def test_rejects_non_json():
    """Test that only JSON documents are accepted."""
    with pytest.raises(TypeError):
        InMemoryRecordStore({"k": object()})


@pytest.mark.asyncio
async def test_json_file_store_persists(tmp_path):
    """Test that a file-backed store survives being reopened."""
    path = tmp_path / "store.json"
    first = JsonFileRecordStore(path)
    await first.set("users", [{"email": "a@example.com"}])

    assert json.loads(path.read_text())["users"] == [{"email": "a@example.com"}]

    second = JsonFileRecordStore(path)
    assert await second.get("users") == [{"email": "a@example.com"}]

    await second.delete("users")
    assert "users" not in json.loads(path.read_text())
