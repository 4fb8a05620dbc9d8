"""Client for the LIFX HTTP API.

`LifxAPIClient` turns each intent (list, read, write, effect) into a single
HTTP request. Failures of any kind are logged and normalised into an empty
result or ``False``; nothing is raised to the caller and nothing is retried.
The next poll tick or user action is the retry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from .const import EFFECT_PARAMETERS, LIFX_API_BASE_URL, LIFX_REQUEST_TIMEOUT

_LOGGER = logging.getLogger(__name__)


def _resolve_payload_value(
    payload: Mapping[str, Any], *keys: str, default: Any = None
) -> Any:
    """Return the first non-``None`` value for ``keys`` in ``payload``."""

    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


@dataclass(slots=True)
class RemoteLightState:
    """State of a LIFX light as reported by the API.

    Every field is optional: polled payloads may be partial.
    """

    light_id: str | None = None
    label: str | None = None
    power: str | None = None
    brightness: float | None = None
    hue: float | None = None
    saturation: float | None = None
    kelvin: int | None = None
    connected: bool | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RemoteLightState:
        """Normalise a light object from the LIFX API."""

        color = _resolve_payload_value(payload, "color", default={})
        if not isinstance(color, Mapping):
            color = {}
        power = _resolve_payload_value(payload, "power")
        kelvin = _as_float(_resolve_payload_value(color, "kelvin"))
        connected = _resolve_payload_value(payload, "connected")
        return cls(
            light_id=_resolve_payload_value(payload, "id"),
            label=_resolve_payload_value(payload, "label"),
            power=power if isinstance(power, str) else None,
            brightness=_as_float(_resolve_payload_value(payload, "brightness")),
            hue=_as_float(_resolve_payload_value(color, "hue")),
            saturation=_as_float(_resolve_payload_value(color, "saturation")),
            kelvin=round(kelvin) if kelvin is not None else None,
            connected=connected if isinstance(connected, bool) else None,
            raw=dict(payload),
        )

    def summary(self) -> dict[str, Any]:
        """Return the fields shown in the administration interface."""

        return {
            "id": self.light_id,
            "label": self.label,
            "power": self.power,
            "brightness": self.brightness,
            "color": self.raw.get("color"),
        }


def build_selector(light_id: str) -> str:
    """Return the API selector for ``light_id``."""

    if light_id == "all" or ":" in light_id:
        return light_id
    return f"id:{light_id}"


def create_http_client(timeout: float = LIFX_REQUEST_TIMEOUT) -> httpx.AsyncClient:
    """Return an async HTTP client bound to the LIFX API."""

    return httpx.AsyncClient(base_url=LIFX_API_BASE_URL, timeout=timeout)


class LifxAPIClient:
    """Request/response wrapper around the LIFX cloud API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key_getter: Callable[[], str | None],
    ) -> None:
        """Store the HTTP client and the credential source."""

        self._http_client = http_client
        self._api_key_getter = api_key_getter

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    async def _async_request(
        self,
        method: str,
        path: str,
        api_key: str,
        *,
        description: str,
        json: Mapping[str, Any] | None = None,
    ) -> httpx.Response | None:
        """Issue one request, returning None on any failure."""

        try:
            response = await self._http_client.request(
                method,
                path,
                headers=self._headers(api_key),
                json=dict(json) if json is not None else None,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            _LOGGER.error(
                "LIFX API error %s: %s %s",
                description,
                err.response.status_code,
                err.response.reason_phrase,
            )
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as err:
            _LOGGER.error("Error %s: %s", description, err)
            return None
        return response

    @staticmethod
    def _decode_lights(response: httpx.Response, description: str) -> list[Any]:
        try:
            payload = response.json()
        except ValueError as err:
            _LOGGER.error("Invalid JSON %s: %s", description, err)
            return []
        if not isinstance(payload, list):
            _LOGGER.error("Unexpected payload %s: %r", description, payload)
            return []
        return [item for item in payload if isinstance(item, Mapping)]

    async def async_list_lights(self) -> list[RemoteLightState]:
        """Return every light visible to the API key."""

        api_key = self._api_key_getter()
        if not api_key:
            return []
        description = "fetching LIFX lights"
        response = await self._async_request(
            "GET", "/v1/lights/all", api_key, description=description
        )
        if response is None:
            return []
        return [
            RemoteLightState.from_dict(item)
            for item in self._decode_lights(response, description)
        ]

    async def async_get_light_state(self, light_id: str | None) -> RemoteLightState | None:
        """Return the state of ``light_id`` or None when unavailable."""

        api_key = self._api_key_getter()
        if not api_key or not light_id:
            return None
        selector = build_selector(light_id)
        description = f"getting state for {selector}"
        response = await self._async_request(
            "GET", f"/v1/lights/{selector}", api_key, description=description
        )
        if response is None:
            return None
        lights = self._decode_lights(response, description)
        if not lights:
            return None
        return RemoteLightState.from_dict(lights[0])

    async def async_set_state(
        self, light_id: str | None, state: Mapping[str, Any]
    ) -> bool:
        """Write a partial ``state`` to ``light_id``."""

        api_key = self._api_key_getter()
        if not api_key or not light_id:
            _LOGGER.warning("Cannot control LIFX light: API key or selector missing")
            return False
        selector = build_selector(light_id)
        response = await self._async_request(
            "PUT",
            f"/v1/lights/{selector}/state",
            api_key,
            description=f"controlling {selector}",
            json=state,
        )
        if response is None:
            return False
        _LOGGER.info("LIFX light %s updated with state: %s", selector, dict(state))
        return True

    async def async_trigger_effect(self, light_id: str | None, effect: str) -> bool:
        """Run the transient ``effect`` on ``light_id``."""

        api_key = self._api_key_getter()
        if not api_key or not light_id:
            _LOGGER.warning("Cannot trigger LIFX effect: API key or selector missing")
            return False
        selector = build_selector(light_id)
        response = await self._async_request(
            "POST",
            f"/v1/lights/{selector}/effects/{effect}",
            api_key,
            description=f"triggering {effect} on {selector}",
            json=EFFECT_PARAMETERS,
        )
        if response is None:
            return False
        _LOGGER.info("LIFX light %s effect triggered: %s", selector, effect)
        return True

    async def async_close(self) -> None:
        """Close the underlying HTTP client."""

        await self._http_client.aclose()
