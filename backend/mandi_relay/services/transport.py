from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from mandi_relay.config import settings
from mandi_relay.models.schemas import ChannelInfo
from mandi_relay.services.exceptions import TransportError


class Transport:
    """Outbound side of the chat network, as seen by the pipeline."""

    async def get_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        raise NotImplementedError

    async def send(self, channel_id: str, text: str) -> None:
        """Deliver `text` to `channel_id`; raise TransportError on failure."""
        raise NotImplementedError

    async def list_channels(self) -> List[ChannelInfo]:
        raise NotImplementedError


class GatewayTransport(Transport):
    """
    HTTP bridge to the WhatsApp gateway sidecar, which owns the phone session.

    Endpoints (relative to GATEWAY_URL):
    - GET  /chats                 -> [{id, name, isGroup}, ...]
    - GET  /chats/{id}            -> {id, name, isGroup} or 404
    - POST /chats/{id}/messages   <- {"text": ...}

    `requests` is blocking, so every call is offloaded to the default executor.
    """

    def __init__(self,
                 base_url: str | None = None,
                 token: str | None = None,
                 timeout: float | None = None,
                 session: requests.Session | None = None) -> None:
        self._base_url = (base_url or settings.GATEWAY_URL).rstrip("/")
        self._token = token if token is not None else settings.GATEWAY_TOKEN
        self._timeout = timeout or settings.GATEWAY_TIMEOUT
        self._session = session or requests.Session()
        self._logger = logging.getLogger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _url(self, *parts: str) -> str:
        return "/".join([self._base_url, *(quote(p, safe="@.") for p in parts)])

    def _request(self, method: str, url: str, payload: Dict[str, Any] | None = None) -> requests.Response:
        try:
            return self._session.request(
                method, url, json=payload, headers=self._headers(), timeout=self._timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}")

    async def _call(self, method: str, url: str, payload: Dict[str, Any] | None = None) -> requests.Response:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._request(method, url, payload))

    async def get_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        resp = await self._call("GET", self._url("chats", channel_id))
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise TransportError(
                f"Channel lookup HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code
            )
        return ChannelInfo.model_validate(resp.json())

    async def send(self, channel_id: str, text: str) -> None:
        resp = await self._call("POST", self._url("chats", channel_id, "messages"), {"text": text})
        if resp.status_code not in (200, 201, 202):
            raise TransportError(
                f"Send to {channel_id} HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code
            )
        self._logger.debug("Sent %d chars to %s", len(text), channel_id)

    async def list_channels(self) -> List[ChannelInfo]:
        resp = await self._call("GET", self._url("chats"))
        if resp.status_code != 200:
            raise TransportError(f"Chat listing HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code)
        data = resp.json()
        if not isinstance(data, list):
            raise TransportError("Chat listing did not return a JSON array")
        return [ChannelInfo.model_validate(item) for item in data]
