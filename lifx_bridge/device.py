"""Local Matter light device exposed by the bridge."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any

from .const import CHROMATICITY_SCALE, LEVEL_MAX

_LOGGER = logging.getLogger(__name__)

AttributeListener = Callable[[Any], None]
AttributeWriter = Callable[["Attribute", Any], Awaitable[None]]


class ColorMode(IntEnum):
    """Matter ColorControl color modes."""

    CURRENT_HUE_AND_CURRENT_SATURATION = 0
    CURRENT_X_AND_CURRENT_Y = 1
    COLOR_TEMPERATURE_MIREDS = 2


class Attribute(str, Enum):
    """Attributes of the extended color light that the bridge tracks."""

    ON_OFF = "onOff"
    CURRENT_LEVEL = "currentLevel"
    COLOR_TEMPERATURE_MIREDS = "colorTemperatureMireds"
    CURRENT_X = "currentX"
    CURRENT_Y = "currentY"
    COLOR_MODE = "colorMode"


@dataclass(frozen=True, slots=True)
class LocalLightState:
    """Snapshot of the attribute values exposed to Matter controllers."""

    on_off: bool = False
    current_level: int | None = LEVEL_MAX
    color_temperature_mireds: int | None = 250
    current_x: int = 0x616B
    current_y: int = 0x607D
    color_mode: ColorMode = ColorMode.CURRENT_X_AND_CURRENT_Y


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """Basic information published by the Matter node."""

    name: str
    vendor_name: str
    product_name: str
    serial_number: str
    unique_id: str
    port: int


_FIELD_NAMES: dict[Attribute, str] = {
    Attribute.ON_OFF: "on_off",
    Attribute.CURRENT_LEVEL: "current_level",
    Attribute.COLOR_TEMPERATURE_MIREDS: "color_temperature_mireds",
    Attribute.CURRENT_X: "current_x",
    Attribute.CURRENT_Y: "current_y",
    Attribute.COLOR_MODE: "color_mode",
}


def _validate_int(
    attribute: Attribute, value: Any, low: int, high: int, *, nullable: bool
) -> int | None:
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{attribute.value} expects an integer, got {value!r}")
    if not low <= value <= high:
        raise ValueError(f"{attribute.value} out of range [{low}, {high}]: {value}")
    return value


def _validate(attribute: Attribute, value: Any) -> Any:
    """Return ``value`` normalised for ``attribute`` or raise ValueError."""

    if attribute is Attribute.ON_OFF:
        if not isinstance(value, bool):
            raise ValueError(f"onOff expects a boolean, got {value!r}")
        return value
    if attribute is Attribute.CURRENT_LEVEL:
        return _validate_int(attribute, value, 0, LEVEL_MAX, nullable=True)
    if attribute is Attribute.COLOR_TEMPERATURE_MIREDS:
        return _validate_int(attribute, value, 1, 0xFFFF, nullable=True)
    if attribute in (Attribute.CURRENT_X, Attribute.CURRENT_Y):
        return _validate_int(attribute, value, 0, CHROMATICITY_SCALE, nullable=False)
    try:
        return ColorMode(value)
    except ValueError as err:
        raise ValueError(f"colorMode expects a ColorMode, got {value!r}") from err


class LocalLightDevice:
    """Attribute holder for the extended color light endpoint.

    The protocol stack pushes controller writes through
    :meth:`async_write_attribute` and the bridge pushes polled state through
    the typed setters. Every committed change is announced to the
    subscribers of that attribute with the new value only. Writing the value
    an attribute already holds is a no-op.
    """

    def __init__(
        self,
        node_info: NodeInfo,
        *,
        initial_state: LocalLightState | None = None,
        writer: AttributeWriter | None = None,
    ) -> None:
        """Initialise the endpoint with ``node_info`` and optional protocol hook."""

        self.node_info = node_info
        self._state = initial_state or LocalLightState()
        self._writer = writer
        self._listeners: dict[Attribute, list[AttributeListener]] = {
            attribute: [] for attribute in Attribute
        }
        self._identify_start: list[Callable[[], None]] = []
        self._identify_stop: list[Callable[[], None]] = []

    @property
    def state(self) -> LocalLightState:
        """Return the current attribute snapshot."""

        return self._state

    def read_attribute(self, attribute: Attribute) -> Any:
        """Return the current value of ``attribute``."""

        return getattr(self._state, _FIELD_NAMES[attribute])

    def subscribe(
        self, attribute: Attribute, callback: AttributeListener
    ) -> Callable[[], None]:
        """Register ``callback`` for changes to ``attribute``."""

        listeners = self._listeners[attribute]
        listeners.append(callback)

        def _remove() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return _remove

    def on_identify(
        self,
        start: Callable[[], None],
        stop: Callable[[], None] | None = None,
    ) -> Callable[[], None]:
        """Register identify start/stop callbacks."""

        self._identify_start.append(start)
        if stop is not None:
            self._identify_stop.append(stop)

        def _remove() -> None:
            if start in self._identify_start:
                self._identify_start.remove(start)
            if stop is not None and stop in self._identify_stop:
                self._identify_stop.remove(stop)

        return _remove

    def start_identifying(self) -> None:
        """Signal that a controller asked the device to identify itself."""

        _LOGGER.info("Identify started on %s", self.node_info.name)
        for callback in list(self._identify_start):
            callback()

    def stop_identifying(self) -> None:
        """Signal that the identify period ended."""

        _LOGGER.info("Identify stopped on %s", self.node_info.name)
        for callback in list(self._identify_stop):
            callback()

    async def async_write_attribute(self, attribute: Attribute, value: Any) -> bool:
        """Write ``value`` to ``attribute`` and notify on change.

        Returns True when the stored value changed.
        """

        value = _validate(attribute, value)
        if self.read_attribute(attribute) == value:
            return False
        if self._writer is not None:
            await self._writer(attribute, value)
        self._state = replace(self._state, **{_FIELD_NAMES[attribute]: value})
        _LOGGER.debug("%s is now %s", attribute.value, value)
        for callback in list(self._listeners[attribute]):
            callback(value)
        return True

    async def async_set_on_off(self, value: bool) -> bool:
        """Write the onOff attribute."""

        return await self.async_write_attribute(Attribute.ON_OFF, value)

    async def async_set_level(self, value: int) -> bool:
        """Write the currentLevel attribute."""

        return await self.async_write_attribute(Attribute.CURRENT_LEVEL, value)

    async def async_set_color_temperature(self, mireds: int) -> bool:
        """Write the colorTemperatureMireds attribute."""

        return await self.async_write_attribute(
            Attribute.COLOR_TEMPERATURE_MIREDS, mireds
        )

    async def async_set_xy(self, current_x: int, current_y: int) -> bool:
        """Write both chromaticity coordinates."""

        changed_x = await self.async_write_attribute(Attribute.CURRENT_X, current_x)
        changed_y = await self.async_write_attribute(Attribute.CURRENT_Y, current_y)
        return changed_x or changed_y

    async def async_set_color_mode(self, mode: ColorMode) -> bool:
        """Write the colorMode attribute."""

        return await self.async_write_attribute(Attribute.COLOR_MODE, mode)
