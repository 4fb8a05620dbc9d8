"""Tests for the bidirectional sync engine."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

import pytest

from lifx_bridge.api import RemoteLightState
from lifx_bridge.device import Attribute, ColorMode, LocalLightDevice, NodeInfo
from lifx_bridge.storage import BridgeConfig
from lifx_bridge.sync import LifxSyncEngine, SyncContext

LIGHT_ID = "d073d5000001"


class FakeAPIClient:
    """Test double recording every call made by the engine."""

    def __init__(self, states: list[Any] | None = None) -> None:
        """Queue ``states`` to be returned (or raised) by state reads."""

        self.states = list(states or [])
        self.reads: list[str | None] = []
        self.writes: list[tuple[str | None, dict[str, Any]]] = []
        self.effects: list[tuple[str | None, str]] = []

    async def async_get_light_state(self, light_id: str | None) -> Any:
        """Return or raise the next queued state."""

        await asyncio.sleep(0)
        self.reads.append(light_id)
        result = self.states.pop(0) if self.states else None
        if isinstance(result, Exception):
            raise result
        return result

    async def async_set_state(self, light_id: str | None, state: dict[str, Any]) -> bool:
        """Record a state write."""

        await asyncio.sleep(0)
        self.writes.append((light_id, dict(state)))
        return True

    async def async_trigger_effect(self, light_id: str | None, effect: str) -> bool:
        """Record an effect call."""

        self.effects.append((light_id, effect))
        return True


def _config(api_key: str | None = "secret", light_id: str | None = LIGHT_ID) -> BridgeConfig:
    return BridgeConfig(
        pincode=20202021,
        discriminator=3840,
        vendor_id=0xFFF1,
        product_id=0x8000,
        unique_id="1700000000000",
        lifx_api_key=api_key,
        homekit_light_id=light_id,
    )


def _device() -> LocalLightDevice:
    return LocalLightDevice(
        NodeInfo(
            name="Lifx - d073d5000001",
            vendor_name="lifx-bridge",
            product_name="Lifx - d073d5000001",
            serial_number="lifx-bridge-1700000000000",
            unique_id="1700000000000",
            port=5540,
        )
    )


def _engine(
    api: FakeAPIClient, config: BridgeConfig | None = None, **kwargs: Any
) -> tuple[LifxSyncEngine, LocalLightDevice]:
    current = config or _config()
    engine = LifxSyncEngine(api, lambda: current, **kwargs)  # type: ignore[arg-type]
    device = _device()
    engine.attach(device)
    return engine, device


async def _drain() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_sync_context_clears_on_error() -> None:
    """The remote application scope always resets the flag."""

    context = SyncContext()

    with pytest.raises(RuntimeError):
        with context.remote_application():
            assert context.applying_remote is True
            raise RuntimeError("boom")

    assert context.applying_remote is False


async def test_level_change_sends_half_brightness() -> None:
    """Level 127 locally becomes brightness 0.5 remotely."""

    api = FakeAPIClient()
    _, device = _engine(api)

    await device.async_set_level(127)
    await _drain()

    assert api.writes == [(LIGHT_ID, {"brightness": 0.5})]


async def test_on_off_and_color_temperature_changes() -> None:
    """Power and color temperature use the LIFX field names."""

    api = FakeAPIClient()
    _, device = _engine(api)

    await device.async_set_on_off(True)
    await device.async_set_color_temperature(370)
    await _drain()

    assert api.writes == [
        (LIGHT_ID, {"power": "on"}),
        (LIGHT_ID, {"kelvin": 2703}),
    ]


async def test_xy_change_reads_other_coordinate() -> None:
    """A single coordinate change is sent with the current counterpart."""

    api = FakeAPIClient()
    _, device = _engine(api)

    await device.async_write_attribute(Attribute.CURRENT_Y, 32767)
    await device.async_write_attribute(Attribute.CURRENT_X, 32767)
    await _drain()

    assert api.writes[-1] == (
        LIGHT_ID,
        {"color": "x:0.49999237048905165 y:0.49999237048905165"},
    )


async def test_color_mode_change_is_not_propagated() -> None:
    """Color mode has no LIFX counterpart."""

    api = FakeAPIClient()
    _, device = _engine(api)

    await device.async_set_color_mode(ColorMode.COLOR_TEMPERATURE_MIREDS)
    await _drain()

    assert api.writes == []


@pytest.mark.parametrize(
    "config",
    [_config(api_key=None), _config(light_id=None), _config(None, None)],
)
async def test_unconfigured_local_change_is_noop(config: BridgeConfig) -> None:
    """Without a key or selected light nothing is sent and nothing raises."""

    api = FakeAPIClient()
    engine, device = _engine(api, config)

    await device.async_set_on_off(True)
    assert engine.handle_local_change(Attribute.CURRENT_LEVEL, 10) is None
    await _drain()

    assert api.writes == []


async def test_guard_blocks_outbound_while_applying_remote() -> None:
    """The outbound handler returns before any work while the flag is set."""

    api = FakeAPIClient()
    engine, _ = _engine(api)

    with engine.context.remote_application():
        assert engine.handle_local_change(Attribute.ON_OFF, True) is None
    await _drain()

    assert api.writes == []


async def test_remote_state_applied_without_echo() -> None:
    """Applying polled state changes local attributes but sends nothing back."""

    api = FakeAPIClient()
    engine, device = _engine(api)

    await engine.async_apply_remote_state(
        RemoteLightState(power="on", brightness=0.5, kelvin=4000, saturation=0.0)
    )
    await _drain()

    assert device.state.on_off is True
    assert device.state.current_level == 127
    assert device.state.color_temperature_mireds == 250
    assert device.state.color_mode is ColorMode.COLOR_TEMPERATURE_MIREDS
    assert api.writes == []
    assert engine.context.applying_remote is False


async def test_remote_hue_saturation_sets_xy_mode() -> None:
    """Saturated remote colors are written as chromaticity coordinates."""

    api = FakeAPIClient()
    engine, device = _engine(api)

    await engine.async_apply_remote_state(
        RemoteLightState(hue=0.0, saturation=1.0, kelvin=3500)
    )
    await _drain()

    assert device.state.color_mode is ColorMode.CURRENT_X_AND_CURRENT_Y
    assert device.state.current_x / 65535 == pytest.approx(0.64, abs=0.01)
    assert api.writes == []


async def test_remote_power_off_flag_observed_during_write() -> None:
    """The flag is set while the local write happens and cleared afterwards."""

    api = FakeAPIClient()
    engine, device = _engine(api)
    await device.async_set_on_off(True)
    await _drain()
    api.writes.clear()

    observed: list[bool] = []
    device.subscribe(
        Attribute.ON_OFF, lambda value: observed.append(engine.context.applying_remote)
    )

    await engine.async_apply_remote_state(RemoteLightState.from_dict({"power": "off"}))
    await _drain()

    assert device.state.on_off is False
    assert observed == [True]
    assert engine.context.applying_remote is False
    assert api.writes == []


async def test_flag_cleared_when_local_write_fails() -> None:
    """A failing local write propagates and still clears the flag."""

    async def _writer(attribute: Attribute, value: Any) -> None:
        raise RuntimeError("stack unavailable")

    api = FakeAPIClient()
    engine = LifxSyncEngine(api, _config)  # type: ignore[arg-type]
    device = LocalLightDevice(_device().node_info, writer=_writer)
    engine.attach(device)

    with pytest.raises(RuntimeError):
        await engine.async_apply_remote_state(RemoteLightState(power="on"))

    assert engine.context.applying_remote is False

    engine.detach()
    plain = _device()
    engine.attach(plain)
    await plain.async_set_on_off(True)
    await _drain()
    assert api.writes == [(LIGHT_ID, {"power": "on"})]


async def test_concurrent_remote_applications_are_serialised() -> None:
    """Overlapping inbound applications run one after the other under the flag."""

    api = FakeAPIClient()
    engine = LifxSyncEngine(api, _config)  # type: ignore[arg-type]
    seen: list[tuple[Attribute, bool]] = []

    async def _writer(attribute: Attribute, value: Any) -> None:
        await asyncio.sleep(0)
        seen.append((attribute, engine.context.applying_remote))

    device = LocalLightDevice(_device().node_info, writer=_writer)
    engine.attach(device)

    await asyncio.gather(
        engine.async_apply_remote_state(RemoteLightState(power="on", brightness=0.5)),
        engine.async_apply_remote_state(RemoteLightState(power="off", brightness=1.0)),
    )
    await _drain()

    assert seen == [
        (Attribute.ON_OFF, True),
        (Attribute.CURRENT_LEVEL, True),
        (Attribute.ON_OFF, True),
        (Attribute.CURRENT_LEVEL, True),
    ]
    assert device.state.on_off is False
    assert device.state.current_level == 254
    assert engine.context.applying_remote is False
    assert api.writes == []


async def test_inbound_skipped_without_device_or_state() -> None:
    """No device or no state means nothing happens."""

    api = FakeAPIClient()
    engine = LifxSyncEngine(api, _config)  # type: ignore[arg-type]

    await engine.async_apply_remote_state(RemoteLightState(power="on"))
    await engine.async_poll_once()

    assert api.reads == []
    engine.attach(_device())
    await engine.async_apply_remote_state(None)
    assert engine.context.applying_remote is False


async def test_poll_once_fetches_selected_light() -> None:
    """A poll reads the configured light and applies it."""

    api = FakeAPIClient(states=[RemoteLightState(power="on")])
    engine, device = _engine(api)

    await engine.async_poll_once()

    assert api.reads == [LIGHT_ID]
    assert device.state.on_off is True
    assert api.writes == []


async def test_poll_once_unconfigured_does_not_fetch() -> None:
    """Unconfigured polls never reach the API."""

    api = FakeAPIClient(states=[RemoteLightState(power="on")])
    engine, _ = _engine(api, _config(api_key=None))

    await engine.async_poll_once()

    assert api.reads == []


async def test_failing_tick_does_not_stop_next_tick() -> None:
    """An exception in one tick leaves the schedule running."""

    api = FakeAPIClient(
        states=[RuntimeError("network down"), RemoteLightState(power="on")]
    )
    engine, device = _engine(api, poll_interval=timedelta(seconds=0.01))

    engine.start_polling()
    for _ in range(50):
        await asyncio.sleep(0.01)
        if device.state.on_off:
            break
    await engine.async_shutdown()

    assert len(api.reads) >= 2
    assert device.state.on_off is True


async def test_stop_polling_cancels_schedule() -> None:
    """No ticks run after polling is stopped."""

    api = FakeAPIClient()
    engine, _ = _engine(api, poll_interval=timedelta(seconds=0.01))

    engine.start_polling()
    engine.stop_polling()
    await asyncio.sleep(0.05)

    assert api.reads == []


async def test_identify_triggers_breathe_effect() -> None:
    """Identify start maps to one breathe effect call."""

    api = FakeAPIClient()
    _, device = _engine(api)

    device.start_identifying()
    device.stop_identifying()
    await _drain()

    assert api.effects == [(LIGHT_ID, "breathe")]


async def test_identify_unconfigured_is_noop() -> None:
    """Identify without a selected light sends nothing."""

    api = FakeAPIClient()
    _, device = _engine(api, _config(light_id=None))

    device.start_identifying()
    await _drain()

    assert api.effects == []
