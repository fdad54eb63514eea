import pytest
import requests

from voicescreen.errors import RoomProvisioningError, RoomTimeoutError
from voicescreen.infrastructure.rooms import daily
from voicescreen.infrastructure.rooms.daily import DailyRoomClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def patch_post(monkeypatch, result):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(daily.requests, "post", fake_post)
    return calls


def test_missing_key_is_rejected():
    with pytest.raises(RoomProvisioningError) as info:
        DailyRoomClient("")
    assert info.value.status == 500


def test_create_room(monkeypatch):
    calls = patch_post(monkeypatch, FakeResponse(200, {"url": "https://x.daily.co/r1", "name": "r1", "id": "abc"}))
    room = DailyRoomClient("key").create_room("  r1 ")
    assert room.url == "https://x.daily.co/r1"
    assert room.id == "abc"
    body = calls[0]["json"]
    assert body["name"] == "r1"
    assert body["privacy"] == "public"
    assert body["properties"] == {"enable_screenshare": True, "enable_chat": True}
    assert calls[0]["headers"]["Authorization"] == "Bearer key"
    assert calls[0]["timeout"] == 15


def test_missing_url_rebuilt_from_domain(monkeypatch):
    patch_post(monkeypatch, FakeResponse(200, {"name": "r2"}))
    assert DailyRoomClient("key", domain="team.daily.co").create_room().url == "https://team.daily.co/r2"


def test_upstream_error_maps_to_502(monkeypatch):
    patch_post(monkeypatch, FakeResponse(400, {"error": "invalid-request-error"}))
    with pytest.raises(RoomProvisioningError) as info:
        DailyRoomClient("key").create_room()
    assert info.value.status == 502
    assert info.value.upstream_status == 400
    assert info.value.detail == {"error": "invalid-request-error"}


def test_timeout(monkeypatch):
    patch_post(monkeypatch, requests.Timeout("slow"))
    with pytest.raises(RoomTimeoutError) as info:
        DailyRoomClient("key").create_room()
    assert info.value.status == 504


def test_connection_failure(monkeypatch):
    patch_post(monkeypatch, requests.ConnectionError("refused"))
    with pytest.raises(RoomProvisioningError) as info:
        DailyRoomClient("key").create_room()
    assert info.value.status == 500
