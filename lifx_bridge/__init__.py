"""Expose a LIFX cloud light as a local Matter accessory."""

from __future__ import annotations

from .bridge import LifxBridge
from .const import DOMAIN

__all__ = ["DOMAIN", "LifxBridge"]
