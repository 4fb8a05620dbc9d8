"""Unit conversions between Matter attribute units and LIFX API units."""

from __future__ import annotations

import colorsys

from .const import (
    CHROMATICITY_SCALE,
    LEVEL_MAX,
    MIREDS_PHYSICAL_MAX,
    MIREDS_PHYSICAL_MIN,
)

_MIREDS_PER_KELVIN = 1_000_000


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def on_off_to_power(value: bool) -> str:
    """Return the LIFX power string for a Matter on/off value."""

    return "on" if value else "off"


def power_to_on_off(power: str) -> bool:
    """Return the Matter on/off value for a LIFX power string."""

    return power.strip().lower() == "on"


def level_to_brightness(level: int) -> float:
    """Convert a Matter level (0-254) to LIFX brightness (0.0-1.0)."""

    return level / LEVEL_MAX


def brightness_to_level(brightness: float) -> int:
    """Convert LIFX brightness (0.0-1.0) to a Matter level (0-254)."""

    return _clamp(round(brightness * LEVEL_MAX), 0, LEVEL_MAX)


def mireds_to_kelvin(mireds: int) -> int:
    """Convert a color temperature in mireds to Kelvin."""

    if mireds <= 0:
        raise ValueError(f"Invalid color temperature: {mireds} mireds")
    return round(_MIREDS_PER_KELVIN / mireds)


def kelvin_to_mireds(kelvin: int | float) -> int:
    """Convert Kelvin to mireds, clamped to the advertised physical range."""

    if kelvin <= 0:
        raise ValueError(f"Invalid color temperature: {kelvin} K")
    mireds = round(_MIREDS_PER_KELVIN / kelvin)
    return _clamp(mireds, MIREDS_PHYSICAL_MIN, MIREDS_PHYSICAL_MAX)


def xy_to_color_string(current_x: int, current_y: int) -> str:
    """Build the LIFX color string for Matter chromaticity coordinates."""

    return f"x:{current_x / CHROMATICITY_SCALE} y:{current_y / CHROMATICITY_SCALE}"


def _srgb_to_linear(channel: float) -> float:
    if channel <= 0.04045:
        return channel / 12.92
    return ((channel + 0.055) / 1.055) ** 2.4


def hs_to_xy(hue: float, saturation: float) -> tuple[int, int]:
    """Convert LIFX hue (degrees) and saturation (0-1) to Matter X/Y.

    The color is treated as full value sRGB and mapped through the D65
    sRGB to XYZ matrix. Coordinates are scaled to the 0-65535 range.
    """

    red, green, blue = (
        _srgb_to_linear(channel)
        for channel in colorsys.hsv_to_rgb((hue % 360) / 360, saturation, 1.0)
    )
    x_tristimulus = red * 0.4124 + green * 0.3576 + blue * 0.1805
    y_tristimulus = red * 0.2126 + green * 0.7152 + blue * 0.0722
    z_tristimulus = red * 0.0193 + green * 0.1192 + blue * 0.9505
    total = x_tristimulus + y_tristimulus + z_tristimulus
    if total == 0:
        return 0, 0
    return (
        _clamp(round(x_tristimulus / total * CHROMATICITY_SCALE), 0, CHROMATICITY_SCALE),
        _clamp(round(y_tristimulus / total * CHROMATICITY_SCALE), 0, CHROMATICITY_SCALE),
    )
