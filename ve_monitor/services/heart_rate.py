"""
Heart Rate Measurement decoding (transport side).

The detection core only ever sees an integer BPM; this helper turns a raw
Heart Rate Measurement characteristic payload into one.
"""

from typing import Optional


def decode_heart_rate(payload) -> Optional[int]:
    """
    Decode BPM from a Heart Rate Measurement payload.

    Flags bit 0 selects a 16-bit little-endian value at bytes 1-2,
    otherwise BPM is the 8-bit value at byte 1.

    Returns:
        BPM, or None if the payload is too short
    """
    payload = bytes(payload)
    if len(payload) < 2:
        return None
    if payload[0] & 0x01:
        if len(payload) < 3:
            return None
        return payload[1] + (payload[2] << 8)
    return payload[1]
