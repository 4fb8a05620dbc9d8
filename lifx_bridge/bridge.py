"""Runtime wiring for the LIFX Matter bridge."""

from __future__ import annotations

import logging
from datetime import timedelta

import httpx

from .api import LifxAPIClient, RemoteLightState, create_http_client
from .const import DEFAULT_DEVICE_NAME, DEFAULT_MATTER_PORT, VENDOR_NAME
from .device import AttributeWriter, LocalLightDevice, NodeInfo
from .logs import BufferedLogHandler
from .pairing import PairingCodes, build_pairing_codes
from .storage import BridgeConfig, ConfigStore
from .sync import LifxSyncEngine

_LOGGER = logging.getLogger(__name__)


class LifxBridge:
    """Own the configuration, the local device and the sync engine."""

    def __init__(
        self,
        store: ConfigStore,
        *,
        http_client: httpx.AsyncClient | None = None,
        log_handler: BufferedLogHandler | None = None,
        matter_port: int = DEFAULT_MATTER_PORT,
        poll_interval: timedelta | None = None,
        device_writer: AttributeWriter | None = None,
    ) -> None:
        """Create the bridge components; nothing is loaded until setup."""

        self.store = store
        self.log_handler = log_handler or BufferedLogHandler()
        self.matter_port = matter_port
        self._device_writer = device_writer
        self._config: BridgeConfig | None = None
        self.device: LocalLightDevice | None = None
        self.api_client = LifxAPIClient(
            http_client or create_http_client(), self._current_api_key
        )
        self.engine = LifxSyncEngine(
            self.api_client, lambda: self.config, poll_interval=poll_interval
        )

    @property
    def config(self) -> BridgeConfig:
        """Return the loaded configuration."""

        if self._config is None:
            raise RuntimeError("Bridge configuration has not been loaded")
        return self._config

    def _current_api_key(self) -> str | None:
        return self._config.lifx_api_key if self._config is not None else None

    @property
    def pairing_codes(self) -> PairingCodes:
        """Return the onboarding payloads for the current configuration."""

        config = self.config
        return build_pairing_codes(
            passcode=config.pincode,
            discriminator=config.discriminator,
            vendor_id=config.vendor_id,
            product_id=config.product_id,
        )

    def _node_info(self) -> NodeInfo:
        config = self.config
        name = (
            f"Lifx - {config.homekit_light_id}"
            if config.homekit_light_id
            else DEFAULT_DEVICE_NAME
        )
        return NodeInfo(
            name=name,
            vendor_name=VENDOR_NAME,
            product_name=name,
            serial_number=f"{VENDOR_NAME}-{config.unique_id}",
            unique_id=config.unique_id,
            port=self.matter_port,
        )

    async def async_setup(self) -> None:
        """Load configuration and create the local light endpoint."""

        self._config = await self.store.async_load()
        self.device = LocalLightDevice(self._node_info(), writer=self._device_writer)
        self.engine.attach(self.device)
        codes = self.pairing_codes
        _LOGGER.info(
            "Matter device %s ready on port %s (manual pairing code %s)",
            self.device.node_info.name,
            self.matter_port,
            codes.manual_pairing_code,
        )

    async def async_start(self) -> None:
        """Set up the bridge and start polling the LIFX light."""

        await self.async_setup()
        self.engine.start_polling()

    async def async_stop(self) -> None:
        """Stop polling and release the HTTP client."""

        await self.engine.async_shutdown()
        await self.api_client.async_close()

    async def async_update_api_key(self, api_key: str) -> None:
        """Store a new LIFX API key."""

        self._config = self.config.with_api_key(api_key)
        await self.store.async_save(self._config)
        _LOGGER.info("LIFX API key updated")

    async def async_select_light(self, light_id: str) -> None:
        """Bind the local device to ``light_id``."""

        self._config = self.config.with_light(light_id)
        await self.store.async_save(self._config)
        if self.device is not None:
            self.device.node_info = self._node_info()
        _LOGGER.info("HomeKit light selected: %s", light_id)

    async def async_get_selected_light(self) -> RemoteLightState | None:
        """Return the selected light from the account's light list."""

        light_id = self.config.homekit_light_id
        if not light_id:
            return None
        for light in await self.api_client.async_list_lights():
            if light.light_id == light_id:
                return light
        return None
