import time

import pytest

from propmatch.clients import GoogleMapsClient, RegridClient
from propmatch.clients import google_maps_client, regrid_client


def test_missing_keys_disable_clients(monkeypatch):
    monkeypatch.setattr(google_maps_client, "GOOGLE_MAPS_API_KEY", None)
    monkeypatch.setattr(regrid_client, "REGRID_API_KEY", "")
    assert GoogleMapsClient().enabled is False
    assert RegridClient().enabled is False


def test_clients_are_singletons(monkeypatch):
    monkeypatch.setattr(google_maps_client, "GOOGLE_MAPS_API_KEY", "test-key")
    assert GoogleMapsClient() is GoogleMapsClient()
    assert GoogleMapsClient().enabled is True


@pytest.mark.asyncio
async def test_parcel_lookup_served_from_cache(monkeypatch):
    monkeypatch.setattr(regrid_client, "REGRID_API_KEY", "test-key")
    client = RegridClient()
    body = {"features": [{"properties": {"address": "1 A ST"}}]}
    client._cache["33.749000,-84.388000"] = (time.monotonic(), body)

    assert await client.parcel_lookup(33.749, -84.388) is body
    assert client._session is None


def test_expired_cache_entries_are_dropped(monkeypatch):
    monkeypatch.setattr(regrid_client, "REGRID_API_KEY", "test-key")
    monkeypatch.setattr(regrid_client, "PARCEL_CACHE_TTL", 10)
    client = RegridClient()
    client._cache["k"] = (time.monotonic() - 11, {"features": []})
    assert client._cached("k") is None
    assert "k" not in client._cache


def test_storing_a_response_sweeps_expired_entries(monkeypatch):
    monkeypatch.setattr(regrid_client, "REGRID_API_KEY", "test-key")
    monkeypatch.setattr(regrid_client, "PARCEL_CACHE_TTL", 10)
    client = RegridClient()
    now = time.monotonic()
    client._cache["old-1"] = (now - 30, {"features": []})
    client._cache["old-2"] = (now - 11, {"features": []})
    client._cache["fresh"] = (now - 1, {"features": []})

    client._store("new", {"features": []})

    assert list(client._cache) == ["fresh", "new"]
