"""
Administration API for selecting the light and editing credentials.
"""

from __future__ import annotations

import logging
from importlib import metadata
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .bridge import LifxBridge
from .pairing import qr_code_data_url

_LOGGER = logging.getLogger(__name__)

_DISTRIBUTION = "lifx-matter-bridge"

router = APIRouter(prefix="/api", tags=["Bridge"])


# --- Request Models ---


class ApiKeyBody(BaseModel):
    """New LIFX API key."""
    apiKey: Optional[str] = None


class LightSelectionBody(BaseModel):
    """LIFX light to expose over Matter."""
    lightId: Optional[str] = None


class ControlBody(BaseModel):
    """Direct control request for a LIFX light."""
    command: Optional[str] = None
    selector: Optional[str] = None
    state: Optional[dict[str, Any]] = None
    effect: Optional[str] = None


def get_bridge(request: Request) -> LifxBridge:
    return request.app.state.bridge


def _package_info() -> dict[str, Any]:
    try:
        dist = metadata.metadata(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        _LOGGER.error("Package metadata for %s is not available", _DISTRIBUTION)
        return {}
    return {
        "name": dist["Name"],
        "version": dist["Version"],
        "description": dist.get("Summary"),
    }


# --- Endpoints ---


@router.get("/info")
async def get_info(bridge: LifxBridge = Depends(get_bridge)):
    """Configuration summary, pairing codes and the account's lights."""
    config = bridge.config
    codes = bridge.pairing_codes

    lights = []
    if config.lifx_api_key:
        lights = await bridge.api_client.async_list_lights()
    # any light returned means the key works
    api_key_valid = bool(lights)
    light_ids = {light.light_id for light in lights}

    return {
        "pincode": config.pincode,
        "qrPairingCode": codes.qr_pairing_code,
        "qrCodeDataUrl": qr_code_data_url(codes.qr_pairing_code),
        "manualPairingCode": codes.manual_pairing_code,
        "lifxApiKey": config.lifx_api_key,
        "apiKeyValid": api_key_valid,
        "homekitLightId": config.homekit_light_id,
        "homekitLightValid": config.homekit_light_id in light_ids,
        "lights": [light.summary() for light in lights],
        "packageJson": _package_info(),
    }


@router.get("/logs")
async def get_logs(bridge: LifxBridge = Depends(get_bridge)):
    """Buffered log lines, oldest first."""
    return bridge.log_handler.get_logs()


@router.post("/update-api-key")
async def update_api_key(body: ApiKeyBody, bridge: LifxBridge = Depends(get_bridge)):
    """Replace the stored LIFX API key."""
    if not body.apiKey:
        return PlainTextResponse("Missing API Key.", status_code=400)
    await bridge.async_update_api_key(body.apiKey)
    return PlainTextResponse("LIFX API Key updated.")


@router.post("/set-homekit-light")
async def set_homekit_light(
    body: LightSelectionBody, bridge: LifxBridge = Depends(get_bridge)
):
    """Select the LIFX light exposed as the Matter accessory."""
    if not body.lightId:
        return PlainTextResponse("Missing light ID.", status_code=400)
    await bridge.async_select_light(body.lightId)
    return PlainTextResponse("HomeKit light selected.")


@router.get("/lights")
async def get_lights(bridge: LifxBridge = Depends(get_bridge)):
    """The selected light's current state, as a one element list."""
    if not bridge.config.lifx_api_key:
        return JSONResponse([], status_code=400)
    selected = await bridge.async_get_selected_light()
    return [selected.raw] if selected is not None else []


@router.post("/control")
async def control_light(body: ControlBody, bridge: LifxBridge = Depends(get_bridge)):
    """Set state on, or run an effect on, a LIFX light."""
    if not bridge.config.lifx_api_key:
        return PlainTextResponse("LIFX API Key not set.", status_code=400)

    if body.command == "set_state" and body.state is not None:
        success = await bridge.api_client.async_set_state(body.selector, body.state)
    elif body.command == "effect" and body.effect:
        success = await bridge.api_client.async_trigger_effect(
            body.selector, body.effect
        )
    else:
        return PlainTextResponse("Invalid control command.", status_code=400)

    if not success:
        return PlainTextResponse("Failed to control light.", status_code=500)
    return PlainTextResponse("Light controlled successfully.")


def create_app(bridge: LifxBridge) -> FastAPI:
    """Build the administration app bound to ``bridge``."""
    app = FastAPI(title="LIFX Matter Bridge")
    app.state.bridge = bridge
    app.include_router(router)
    return app
