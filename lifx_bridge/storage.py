"""Persistent bridge configuration."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import voluptuous as vol

from .const import DEFAULT_DISCRIMINATOR, DEFAULT_PRODUCT_ID, DEFAULT_VENDOR_ID

_LOGGER = logging.getLogger(__name__)

PASSCODE_MIN = 10_000_000
PASSCODE_MAX = 99_999_998
INVALID_PASSCODES = frozenset(
    {int(str(digit) * 8) for digit in range(10)} | {12345678, 87654321}
)

_OPTIONAL_STRING = vol.Any(None, vol.All(str, vol.Length(min=1)))

FIELD_VALIDATORS: dict[str, Any] = {
    "pincode": vol.All(
        int,
        vol.Range(min=1, max=PASSCODE_MAX),
        vol.NotIn(INVALID_PASSCODES),
    ),
    "discriminator": vol.All(int, vol.Range(min=0, max=0xFFF)),
    "vendorId": vol.All(int, vol.Range(min=0, max=0xFFFF)),
    "productId": vol.All(int, vol.Range(min=0, max=0xFFFF)),
    "uniqueId": vol.All(str, vol.Length(min=1)),
    "lifxApiKey": _OPTIONAL_STRING,
    "homekitLightId": _OPTIONAL_STRING,
}


def generate_passcode() -> int:
    """Return a random 8-digit setup passcode accepted by Matter."""

    while True:
        passcode = PASSCODE_MIN + secrets.randbelow(PASSCODE_MAX - PASSCODE_MIN + 1)
        if passcode not in INVALID_PASSCODES:
            return passcode


@dataclass(frozen=True)
class BridgeConfig:
    """Commissioning parameters, LIFX credential and light selection."""

    pincode: int
    discriminator: int
    vendor_id: int
    product_id: int
    unique_id: str
    lifx_api_key: str | None = None
    homekit_light_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def generate_defaults(cls) -> BridgeConfig:
        """Create a fresh configuration for a first run."""

        return cls(
            pincode=generate_passcode(),
            discriminator=DEFAULT_DISCRIMINATOR,
            vendor_id=DEFAULT_VENDOR_ID,
            product_id=DEFAULT_PRODUCT_ID,
            unique_id=str(int(time.time() * 1000)),
        )

    @classmethod
    def from_storage(cls, data: Mapping[str, Any]) -> BridgeConfig:
        """Create a configuration from a validated storage record."""

        known = set(FIELD_VALIDATORS)
        return cls(
            pincode=data["pincode"],
            discriminator=data["discriminator"],
            vendor_id=data["vendorId"],
            product_id=data["productId"],
            unique_id=data["uniqueId"],
            lifx_api_key=data.get("lifxApiKey"),
            homekit_light_id=data.get("homekitLightId"),
            extra={key: value for key, value in data.items() if key not in known},
        )

    def as_storage(self) -> dict[str, Any]:
        """Serialise the configuration to the on-disk record."""

        return {
            **self.extra,
            "pincode": self.pincode,
            "discriminator": self.discriminator,
            "vendorId": self.vendor_id,
            "productId": self.product_id,
            "uniqueId": self.unique_id,
            "lifxApiKey": self.lifx_api_key,
            "homekitLightId": self.homekit_light_id,
        }

    def with_api_key(self, api_key: str) -> BridgeConfig:
        return replace(self, lifx_api_key=api_key)

    def with_light(self, light_id: str) -> BridgeConfig:
        return replace(self, homekit_light_id=light_id)


def merge_with_defaults(
    stored: Mapping[str, Any], defaults: Mapping[str, Any]
) -> dict[str, Any]:
    """Overlay ``stored`` on ``defaults``, keeping defaults for invalid fields."""

    merged = dict(defaults)
    for key, value in stored.items():
        validator = FIELD_VALIDATORS.get(key)
        if validator is None:
            merged[key] = value
            continue
        try:
            merged[key] = vol.Schema(validator)(value)
        except vol.Invalid as err:
            _LOGGER.warning("Ignoring invalid config value for %s: %s", key, err)
    return merged


async def _async_run_in_executor(func: Callable[..., Any], *args: Any) -> Any:
    return await asyncio.get_running_loop().run_in_executor(None, func, *args)


class ConfigStore:
    """Read and write the bridge configuration as a JSON object."""

    def __init__(self, path: str | Path) -> None:
        """Bind the store to ``path``."""

        self.path = Path(path)

    async def async_load_raw(self) -> dict[str, Any] | None:
        """Return the stored JSON object or None if absent or unreadable."""

        def _read() -> dict[str, Any] | None:
            if not self.path.exists():
                return None
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as err:
                _LOGGER.warning("Unreadable config file %s: %s", self.path, err)
                return None
            if not isinstance(data, dict):
                _LOGGER.warning("Config file %s is not a JSON object", self.path)
                return None
            return data

        return await _async_run_in_executor(_read)

    async def async_save(self, config: BridgeConfig) -> None:
        """Persist ``config``."""

        def _write() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(config.as_storage(), indent=2), encoding="utf-8"
            )

        await _async_run_in_executor(_write)
        _LOGGER.info("Configuration saved to %s", self.path)

    async def async_load(self) -> BridgeConfig:
        """Load the configuration, creating and saving defaults when missing."""

        defaults = BridgeConfig.generate_defaults()
        stored = await self.async_load_raw()
        if stored is None:
            _LOGGER.info(
                "No usable config at %s; generated a new configuration", self.path
            )
            await self.async_save(defaults)
            return defaults

        config = BridgeConfig.from_storage(
            merge_with_defaults(stored, defaults.as_storage())
        )
        _LOGGER.info("Configuration loaded from %s", self.path)
        if config.as_storage() != stored:
            # Persist filled-in fields so the pairing identity stays stable.
            await self.async_save(config)
        return config
