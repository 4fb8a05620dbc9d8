"""Constants for the LIFX Matter bridge."""

from datetime import timedelta

DOMAIN = "lifx_bridge"

LIFX_API_BASE_URL = "https://api.lifx.com"
LIFX_REQUEST_TIMEOUT = 10.0
IDENTIFY_EFFECT = "breathe"
EFFECT_PARAMETERS = {
    "period": 2,
    "cycles": 3,
    "persist": False,
    "power_on": True,
}

POLLING_INTERVAL = timedelta(seconds=10)

LEVEL_MAX = 254
CHROMATICITY_SCALE = 65535
MIREDS_PHYSICAL_MIN = 111
MIREDS_PHYSICAL_MAX = 400

DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_DISCRIMINATOR = 3840
DEFAULT_VENDOR_ID = 0xFFF1
DEFAULT_PRODUCT_ID = 0x8000
DEFAULT_WEB_PORT = 3000
DEFAULT_MATTER_PORT = 5540
DEFAULT_DEVICE_NAME = "LIFX Matter Bridge"
VENDOR_NAME = "lifx-bridge"

LOG_BUFFER_SIZE = 500
