"""Matter onboarding payloads for the commissioning parameters.

Produces the ``MT:`` QR code payload, its rendered image and the 11-digit
manual pairing code that a controller uses to commission the bridge.
"""

from __future__ import annotations

from dataclasses import dataclass

import segno

_BASE38_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ-."
_QR_PREFIX = "MT:"

# Discovery over IP only.
RENDEZVOUS_ON_NETWORK = 0x04
COMMISSIONING_FLOW_STANDARD = 0

_VERHOEFF_MULTIPLY = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 2, 3, 4, 0, 6, 7, 8, 9, 5),
    (2, 3, 4, 0, 1, 7, 8, 9, 5, 6),
    (3, 4, 0, 1, 2, 8, 9, 5, 6, 7),
    (4, 0, 1, 2, 3, 9, 5, 6, 7, 8),
    (5, 9, 8, 7, 6, 0, 4, 3, 2, 1),
    (6, 5, 9, 8, 7, 1, 0, 4, 3, 2),
    (7, 6, 5, 9, 8, 2, 1, 0, 4, 3),
    (8, 7, 6, 5, 9, 3, 2, 1, 0, 4),
    (9, 8, 7, 6, 5, 4, 3, 2, 1, 0),
)
_VERHOEFF_PERMUTE = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 5, 7, 6, 2, 8, 3, 0, 9, 4),
    (5, 8, 0, 3, 7, 9, 6, 1, 4, 2),
    (8, 9, 1, 6, 0, 4, 3, 5, 2, 7),
    (9, 4, 5, 3, 1, 2, 6, 8, 7, 0),
    (4, 2, 8, 6, 5, 7, 3, 9, 0, 1),
    (2, 7, 9, 3, 8, 0, 6, 4, 1, 5),
    (7, 0, 4, 6, 9, 1, 3, 2, 5, 8),
)
_VERHOEFF_INVERSE = (0, 4, 3, 2, 1, 5, 6, 7, 8, 9)


@dataclass(frozen=True, slots=True)
class PairingCodes:
    """Both representations of the onboarding payload."""

    qr_pairing_code: str
    manual_pairing_code: str


def verhoeff_check_digit(digits: str) -> int:
    """Return the Verhoeff check digit for a string of decimal digits."""

    checksum = 0
    for position, char in enumerate(reversed(digits)):
        checksum = _VERHOEFF_MULTIPLY[checksum][
            _VERHOEFF_PERMUTE[(position + 1) % 8][int(char)]
        ]
    return _VERHOEFF_INVERSE[checksum]


def base38_encode(data: bytes) -> str:
    """Encode ``data`` with the Matter base38 alphabet."""

    chars: list[str] = []
    for offset in range(0, len(data), 3):
        chunk = data[offset : offset + 3]
        value = int.from_bytes(chunk, "little")
        length = {1: 2, 2: 4, 3: 5}[len(chunk)]
        for _ in range(length):
            value, index = divmod(value, 38)
            chars.append(_BASE38_ALPHABET[index])
    return "".join(chars)


def _pack_bits(fields: list[tuple[int, int]]) -> bytes:
    """Pack ``(value, width)`` pairs least significant bit first."""

    packed = 0
    shift = 0
    for value, width in fields:
        if value < 0 or value >= 1 << width:
            raise ValueError(f"Value {value} does not fit in {width} bits")
        packed |= value << shift
        shift += width
    return packed.to_bytes((shift + 7) // 8, "little")


def qr_pairing_code(
    *,
    passcode: int,
    discriminator: int,
    vendor_id: int,
    product_id: int,
    rendezvous: int = RENDEZVOUS_ON_NETWORK,
    flow: int = COMMISSIONING_FLOW_STANDARD,
) -> str:
    """Return the ``MT:`` QR code payload."""

    payload = _pack_bits(
        [
            (0, 3),
            (vendor_id, 16),
            (product_id, 16),
            (flow, 2),
            (rendezvous, 8),
            (discriminator, 12),
            (passcode, 27),
            (0, 4),
        ]
    )
    return _QR_PREFIX + base38_encode(payload)


def manual_pairing_code(*, passcode: int, discriminator: int) -> str:
    """Return the 11-digit manual pairing code."""

    short_discriminator = (discriminator >> 8) & 0xF
    chunk1 = (short_discriminator >> 2) & 0x3
    chunk2 = ((short_discriminator & 0x3) << 14) | (passcode & 0x3FFF)
    chunk3 = passcode >> 14
    digits = f"{chunk1}{chunk2:05d}{chunk3:04d}"
    return f"{digits}{verhoeff_check_digit(digits)}"


def build_pairing_codes(
    *, passcode: int, discriminator: int, vendor_id: int, product_id: int
) -> PairingCodes:
    """Return the QR and manual codes for the commissioning parameters."""

    return PairingCodes(
        qr_pairing_code=qr_pairing_code(
            passcode=passcode,
            discriminator=discriminator,
            vendor_id=vendor_id,
            product_id=product_id,
        ),
        manual_pairing_code=manual_pairing_code(
            passcode=passcode, discriminator=discriminator
        ),
    )


def qr_code_data_url(payload: str, *, scale: int = 8) -> str:
    """Render ``payload`` as a PNG QR code embedded in a ``data:`` URL."""

    return segno.make_qr(payload).png_data_uri(scale=scale, border=2)
