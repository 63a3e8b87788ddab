"""Authenticated HTTP client for the device broker."""

from __future__ import annotations

from typing import Any

import httpx

from remote_emulator.adb.base import PortForward
from remote_emulator.broker.models import RequestOutcome
from remote_emulator.errors import MissingCredentialError

DEFAULT_BASE_URL = "https://device-central.h2solution.vn/api"
SUPPORTED_METHODS = {"GET", "POST", "PUT", "DELETE"}


class BrokerClient:
    """Performs broker calls and folds every failure into a RequestOutcome.

    The token is validated once at construction; no call is ever made
    without one. Calls are never retried here.
    """

    def __init__(
        self,
        *,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        token = str(api_token or "").strip()
        if not token:
            raise MissingCredentialError("broker token is empty")
        self.api_token = token
        self.base_url = str(base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_config(cls, config: Any, **kwargs: Any) -> "BrokerClient":
        broker = config.broker
        return cls(
            api_token=broker.token,
            base_url=broker.base_url,
            timeout_seconds=broker.timeout_seconds,
            **kwargs,
        )

    async def register(self, adb_key: str, trace_request_id: str | None = None) -> RequestOutcome:
        return await self.request(
            "/devices/connect",
            "POST",
            {"adbKey": adb_key, "traceRequestId": trace_request_id},
        )

    async def deregister(self, device_id: str) -> RequestOutcome:
        return await self.request("/devices/disconnect", "POST", {"deviceId": device_id})

    async def deregister_by_trace(
        self,
        trace_request_id: str | None,
        adb_state: dict[str, str],
        device_status: str | None = None,
    ) -> RequestOutcome:
        body: dict[str, Any] = {"traceRequestId": trace_request_id, "adbState": dict(adb_state)}
        if device_status is not None:
            body["deviceStatus"] = device_status
        return await self.request("/devices/disconnectByTraceRequestId", "POST", body)

    async def forward_ports(self, device_id: str, forwards: list[PortForward]) -> RequestOutcome:
        body = {"deviceId": device_id, "ports": [item.to_dict() for item in forwards]}
        return await self.request("/devices/forwardPorts", "POST", body)

    async def list_connected(self) -> RequestOutcome:
        return await self.request("/devices/connected", "GET")

    async def request(self, uri: str, method: str = "GET", body: Any = None) -> RequestOutcome:
        verb = str(method or "").strip().upper()
        try:
            if verb not in SUPPORTED_METHODS:
                raise ValueError(f"unsupported method: {method}")
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                resp = await client.request(
                    verb,
                    self._full_url(uri),
                    json=body if verb in {"POST", "PUT"} else None,
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            return RequestOutcome(_decode_body(e.response), False)
        except httpx.RequestError as e:
            return RequestOutcome(f"No response received: {type(e).__name__}: {e}", False)
        except Exception as e:
            return RequestOutcome(str(e), False)

        if not resp.content:
            return RequestOutcome(None, True)
        try:
            return RequestOutcome(resp.json(), True)
        except ValueError as e:
            return RequestOutcome(f"Malformed response body: {e}", False)

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"follow_redirects": True}
        if self.timeout_seconds is not None:
            kwargs["timeout"] = max(0.1, float(self.timeout_seconds))
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _full_url(self, path: str) -> str:
        value = str(path or "").strip()
        if value.startswith("http://") or value.startswith("https://"):
            return value
        if not value.startswith("/"):
            value = f"/{value}"
        return f"{self.base_url}{value}"


def _decode_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text
