"""MessagePack framing for WebSocket payloads.

Every frame in either direction is a single MessagePack map.
"""

from typing import Any

import msgpack

# Inbound frames are tiny (the largest is a chat line); anything beyond these
# limits is rejected before it reaches pydantic validation.
MAX_FRAME_LEN = 16 * 1024
MAX_STR_LEN = 4 * 1024
MAX_ARRAY_LEN = 256
MAX_MAP_LEN = 32


class DecodeError(Exception):
    """Raised when an inbound frame is not a well-formed MessagePack map."""


def _stringify_keys(obj: object) -> object:
    """Convert int dict keys to str; msgpack maps on the client side expect str keys."""
    if isinstance(obj, dict):
        return {str(k) if isinstance(k, int) else k: _stringify_keys(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_stringify_keys(item) for item in obj]
    return obj


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(_stringify_keys(data))


def decode(data: bytes) -> dict[str, Any]:
    """Decode one inbound frame. Raises DecodeError on anything but a bounded map."""
    if len(data) > MAX_FRAME_LEN:
        raise DecodeError(f"frame too large: {len(data)} bytes (max {MAX_FRAME_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_STR_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=0,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")
    return result
