from __future__ import annotations

import base64


def decode_base64_to_bytes(data: str) -> bytes:
    """Decode a base64 string as sent by CDP into raw bytes."""
    return base64.b64decode(data)


def encode_bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def decode_body(body: str, base64_encoded: bool) -> bytes:
    """
    Turn a CDP body payload into bytes.

    CDP sends text bodies as-is and binary bodies base64 encoded, flagged by
    ``base64Encoded``.
    """
    if base64_encoded:
        return decode_base64_to_bytes(body)
    return body.encode('utf-8')
