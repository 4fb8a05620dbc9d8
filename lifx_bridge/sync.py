"""Bidirectional state synchronisation between the Matter light and LIFX.

Local attribute changes are pushed to the LIFX API as they happen. Remote
state is polled on a fixed interval and written back to the local device.
Writes that originate from polled data run inside
:meth:`SyncContext.remote_application`; while that scope is active the
local change handlers drop the notifications those writes produce, so a
polled value is never echoed back to the remote light.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterator
from contextlib import contextmanager
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Any

from .api import LifxAPIClient, RemoteLightState
from .const import IDENTIFY_EFFECT, POLLING_INTERVAL
from .conversions import (
    brightness_to_level,
    hs_to_xy,
    kelvin_to_mireds,
    level_to_brightness,
    mireds_to_kelvin,
    on_off_to_power,
    power_to_on_off,
    xy_to_color_string,
)
from .device import Attribute, ColorMode, LocalLightDevice

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .storage import BridgeConfig

_LOGGER = logging.getLogger(__name__)

_PROPAGATED_ATTRIBUTES: tuple[Attribute, ...] = (
    Attribute.ON_OFF,
    Attribute.CURRENT_LEVEL,
    Attribute.COLOR_TEMPERATURE_MIREDS,
    Attribute.CURRENT_X,
    Attribute.CURRENT_Y,
)


class SyncContext:
    """Track whether remote state is currently being applied locally."""

    def __init__(self) -> None:
        """Start outside of any remote application."""

        self._applying_remote = False

    @property
    def applying_remote(self) -> bool:
        """Return True while polled state is being written locally."""

        return self._applying_remote

    @contextmanager
    def remote_application(self) -> Iterator[None]:
        """Mark the enclosed local writes as originating from the remote."""

        self._applying_remote = True
        try:
            yield
        finally:
            self._applying_remote = False


class LifxSyncEngine:
    """Keep one local Matter light and one LIFX light consistent."""

    def __init__(
        self,
        api_client: LifxAPIClient,
        config_getter: Callable[[], BridgeConfig],
        *,
        poll_interval: timedelta | None = None,
        context: SyncContext | None = None,
    ) -> None:
        """Initialise the engine with the remote client and config source."""

        self._api_client = api_client
        self._config_getter = config_getter
        self.poll_interval = poll_interval or POLLING_INTERVAL
        self.context = context or SyncContext()
        self._device: LocalLightDevice | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._inbound_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._refresh_handle: asyncio.TimerHandle | None = None
        self._poll_tasks: set[asyncio.Task[Any]] = set()
        self._pending_tasks: set[asyncio.Task[Any]] = set()

    @property
    def device(self) -> LocalLightDevice | None:
        """Return the attached local device, if any."""

        return self._device

    @property
    def is_configured(self) -> bool:
        """Return True when an API key and a light selection exist."""

        config = self._config_getter()
        return bool(config.lifx_api_key and config.homekit_light_id)

    def attach(self, device: LocalLightDevice) -> None:
        """Subscribe to attribute and identify events of ``device``."""

        self.detach()
        self._device = device
        for attribute in _PROPAGATED_ATTRIBUTES:
            self._unsubscribers.append(
                device.subscribe(attribute, partial(self.handle_local_change, attribute))
            )
        self._unsubscribers.append(
            device.on_identify(self.handle_identify_start, self.handle_identify_stop)
        )

    def detach(self) -> None:
        """Drop all subscriptions on the current device."""

        while self._unsubscribers:
            self._unsubscribers.pop()()
        self._device = None

    # Local -> remote

    def handle_local_change(
        self, attribute: Attribute, value: Any
    ) -> asyncio.Task[bool] | None:
        """Push a local attribute change to the LIFX light.

        Returns the task performing the API call, or None when nothing is
        sent.
        """

        if self.context.applying_remote:
            return None

        _LOGGER.info("Matter %s is now %s", attribute.value, value)
        config = self._config_getter()
        if not (config.lifx_api_key and config.homekit_light_id):
            _LOGGER.warning(
                "LIFX API key or HomeKit light ID not set. Cannot control LIFX light."
            )
            return None
        if value is None:
            _LOGGER.warning("Ignoring null value for %s", attribute.value)
            return None

        payload = self._build_remote_payload(attribute, value)
        if payload is None:
            return None
        return self._spawn(
            self._api_client.async_set_state(config.homekit_light_id, payload),
            self._pending_tasks,
        )

    def _build_remote_payload(
        self, attribute: Attribute, value: Any
    ) -> dict[str, Any] | None:
        """Translate a local attribute value into a LIFX state payload."""

        if attribute is Attribute.ON_OFF:
            return {"power": on_off_to_power(value)}
        if attribute is Attribute.CURRENT_LEVEL:
            return {"brightness": level_to_brightness(value)}
        if attribute is Attribute.COLOR_TEMPERATURE_MIREDS:
            try:
                return {"kelvin": mireds_to_kelvin(value)}
            except ValueError as err:
                _LOGGER.warning("Not sending color temperature: %s", err)
                return None
        if self._device is None:
            return None
        state = self._device.state
        if attribute is Attribute.CURRENT_X:
            return {"color": xy_to_color_string(value, state.current_y)}
        if attribute is Attribute.CURRENT_Y:
            return {"color": xy_to_color_string(state.current_x, value)}
        return None

    def handle_identify_start(self) -> asyncio.Task[bool] | None:
        """Flash the LIFX light when a controller asks to identify."""

        config = self._config_getter()
        if not (config.lifx_api_key and config.homekit_light_id):
            _LOGGER.warning("Cannot identify: LIFX API key or HomeKit light ID not set")
            return None
        return self._spawn(
            self._api_client.async_trigger_effect(
                config.homekit_light_id, IDENTIFY_EFFECT
            ),
            self._pending_tasks,
        )

    def handle_identify_stop(self) -> None:
        """Note the end of an identify request; LIFX effects stop on their own."""

        _LOGGER.debug("Identify finished")

    # Remote -> local

    async def async_apply_remote_state(self, state: RemoteLightState | None) -> None:
        """Write polled LIFX state to the local device without echoing it."""

        device = self._device
        if device is None or state is None:
            return

        async with self._inbound_lock:
            _LOGGER.info("Syncing LIFX state to Matter: %s", state.summary())
            with self.context.remote_application():
                await self._async_write_local(device, state)

    @staticmethod
    async def _async_write_local(
        device: LocalLightDevice, state: RemoteLightState
    ) -> None:
        if state.power is not None:
            await device.async_set_on_off(power_to_on_off(state.power))
        if state.brightness is not None:
            await device.async_set_level(brightness_to_level(state.brightness))
        if state.saturation and state.hue is not None:
            current_x, current_y = hs_to_xy(state.hue, state.saturation)
            await device.async_set_xy(current_x, current_y)
            await device.async_set_color_mode(ColorMode.CURRENT_X_AND_CURRENT_Y)
        elif state.kelvin:
            await device.async_set_color_temperature(kelvin_to_mireds(state.kelvin))
            await device.async_set_color_mode(ColorMode.COLOR_TEMPERATURE_MIREDS)

    async def async_poll_once(self) -> None:
        """Fetch the selected light once and apply its state."""

        config = self._config_getter()
        if not (config.lifx_api_key and config.homekit_light_id and self._device):
            return
        _LOGGER.debug("Polling LIFX for status")
        state = await self._api_client.async_get_light_state(config.homekit_light_id)
        if state is not None:
            await self.async_apply_remote_state(state)

    async def _async_poll_tick(self) -> None:
        try:
            await self.async_poll_once()
        except Exception:
            _LOGGER.exception("Polling LIFX failed")

    # Scheduling

    def _spawn(
        self, coro: Coroutine[Any, Any, Any], registry: set[asyncio.Task[Any]]
    ) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        registry.add(task)
        task.add_done_callback(registry.discard)
        return task

    def start_polling(self) -> asyncio.TimerHandle:
        """Poll the LIFX light every ``poll_interval``.

        Each tick runs as its own task and the next tick is scheduled before
        it starts, so a slow or failing tick never delays the following one.
        """

        self._loop = asyncio.get_running_loop()
        interval = self.poll_interval.total_seconds()

        def _wrapper() -> None:
            self._spawn(self._async_poll_tick(), self._poll_tasks)
            assert self._loop is not None
            self._refresh_handle = self._loop.call_later(interval, _wrapper)

        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
        self._refresh_handle = self._loop.call_later(interval, _wrapper)
        _LOGGER.info("Started polling LIFX status every %s seconds", interval)
        return self._refresh_handle

    def stop_polling(self) -> None:
        """Cancel the poll schedule and any tick still running."""

        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
        for task in list(self._poll_tasks):
            task.cancel()

    async def async_shutdown(self) -> None:
        """Stop polling and wait for in-flight remote writes."""

        self.stop_polling()
        tasks = [*self._poll_tasks, *self._pending_tasks]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.detach()
