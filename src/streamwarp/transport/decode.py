"""Response body decompression"""
import gzip
import zlib
from typing import List, Mapping, Optional

import brotli

from ..errors import DecodeError


def header_value(headers: Optional[Mapping], name: str) -> Optional[str]:
    """Case-insensitive header lookup; repeated headers are joined with ', '."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            if isinstance(value, (list, tuple)):
                return ', '.join(str(v) for v in value)
            return value
    return None


def content_encodings(headers: Optional[Mapping]) -> List[str]:
    """Content-Encoding tokens in the order they were applied."""
    raw = header_value(headers, 'Content-Encoding')
    if not raw:
        return []
    return [token.strip().lower() for token in raw.split(',') if token.strip()]


def decode_response_body(buffer: bytes, headers: Optional[Mapping]) -> str:
    """
    Decompress a raw response body and decode it as UTF-8 text.

    gzip, deflate (zlib-wrapped or raw) and br are decompressed, innermost
    encoding last. Unknown encodings and 'identity' leave the bytes as-is.

    Raises:
        DecodeError: the body does not match its declared encoding
    """
    data = bytes(buffer or b'')
    for encoding in reversed(content_encodings(headers)):
        data = _decompress(data, encoding)
    return data.decode('utf-8', errors='replace')


def _decompress(data: bytes, encoding: str) -> bytes:
    if not data:
        return data
    try:
        if encoding in ('gzip', 'x-gzip'):
            return gzip.decompress(data)
        if encoding == 'deflate':
            try:
                return zlib.decompress(data)
            except zlib.error:
                # Some servers send raw deflate without the zlib wrapper
                return zlib.decompress(data, -zlib.MAX_WBITS)
        if encoding == 'br':
            return brotli.decompress(data)
    except (OSError, EOFError, zlib.error, brotli.error) as e:
        raise DecodeError(encoding, str(e)) from e
    return data
