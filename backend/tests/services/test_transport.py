import pytest
import requests

from mandi_relay.services.exceptions import TransportError
from mandi_relay.services.transport import GatewayTransport


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.responses.get((method, url), FakeResponse(404, text="not found"))


BASE = "http://gateway:3001"


def _transport(session, token="secret"):
    return GatewayTransport(base_url=BASE + "/", token=token, timeout=5, session=session)


@pytest.mark.asyncio
async def test_get_channel_parses_gateway_payload():
    session = FakeSession({
        ("GET", f"{BASE}/chats/123@g.us"): FakeResponse(payload={"id": "123@g.us", "name": "Pulses EN", "isGroup": True}),
    })
    info = await _transport(session).get_channel("123@g.us")
    assert info.channel_id == "123@g.us" and info.is_group and info.name == "Pulses EN"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer secret"
    assert session.calls[0]["timeout"] == 5


@pytest.mark.asyncio
async def test_unknown_channel_is_none():
    assert await _transport(FakeSession()).get_channel("nope@g.us") is None


@pytest.mark.asyncio
async def test_channel_lookup_server_error_raises():
    session = FakeSession({("GET", f"{BASE}/chats/x@g.us"): FakeResponse(502, text="bad gateway")})
    with pytest.raises(TransportError) as exc:
        await _transport(session).get_channel("x@g.us")
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_send_posts_text_and_quotes_ids():
    url = f"{BASE}/chats/a%2Fb@g.us/messages"
    session = FakeSession({("POST", url): FakeResponse(201)})
    await _transport(session, token="").send("a/b@g.us", "TUR 6200")
    call = session.calls[0]
    assert call["json"] == {"text": "TUR 6200"}
    assert "Authorization" not in call["headers"]


@pytest.mark.asyncio
async def test_send_rejection_raises():
    session = FakeSession({("POST", f"{BASE}/chats/1@g.us/messages"): FakeResponse(500, text="boom")})
    with pytest.raises(TransportError):
        await _transport(session).send("1@g.us", "hi")


@pytest.mark.asyncio
async def test_network_error_becomes_transport_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as exc:
        await _transport(session).send("1@g.us", "hi")
    assert "refused" in str(exc.value)


@pytest.mark.asyncio
async def test_list_channels():
    session = FakeSession({
        ("GET", f"{BASE}/chats"): FakeResponse(payload=[
            {"id": "1@g.us", "name": "Sellers", "isGroup": True},
            {"id": "91999@c.us", "name": "Ravi", "isGroup": False},
        ]),
    })
    channels = await _transport(session).list_channels()
    assert [(c.channel_id, c.is_group) for c in channels] == [("1@g.us", True), ("91999@c.us", False)]
