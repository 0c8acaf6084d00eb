"""Deterministic string fingerprints used as row identifiers."""

from __future__ import annotations

import struct

MAX_HASH_LENGTH = 10_000
_HALF_LENGTH = MAX_HASH_LENGTH // 2
_INT32_MASK = 0xFFFF_FFFF
_INT32_SIGN = 0x8000_0000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def utf16_units(text: str) -> tuple[int, ...]:
    """Split a string into its UTF-16 code units.

    Characters outside the Basic Multilingual Plane count as two units, so
    lengths and hashes agree with the ones produced by JavaScript hosts.

    Args:
        text (str): the string to split

    Returns:
        tuple[int, ...]: the UTF-16 code units of `text`
    """
    data = text.encode("utf-16-le", "surrogatepass")
    return struct.unpack(f"<{len(data) // 2}H", data)


def string_hash(text: str) -> str:
    """Compute the compact fingerprint of a string.

    Every UTF-16 code unit is visited once, from the last to the first, with
    ``hash = (hash << 5) - hash + unit`` truncated to a signed 32-bit integer
    at each step. Strings longer than `MAX_HASH_LENGTH` units are reduced to
    their first and last halves, and the original length is appended so that
    long strings of different lengths stay distinguishable.

    This is not a cryptographic hash: collisions are possible. Two long
    strings of the same length that differ only in the elided middle collide.

    Args:
        text (str): the string to fingerprint

    Returns:
        str: the signed 32-bit hash in base 10, suffixed with ``-<length>``
            when the input was truncated
    """
    units = utf16_units(text)
    original_length = len(units)
    truncated = original_length > MAX_HASH_LENGTH
    if truncated:
        units = units[:_HALF_LENGTH] + units[-_HALF_LENGTH:]

    value = 0
    for unit in reversed(units):
        value = _to_int32((value << 5) - value + unit)

    if truncated:
        return f"{value}-{original_length}"
    return str(value)
