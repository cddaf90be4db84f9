"""Test response body decompression."""
import gzip
import zlib

import brotli
import pytest

from streamwarp.errors import DecodeError
from streamwarp.transport import decode_response_body, header_value

TEXT = 'var linksData = {links: [{name: "Canal Uno", url: "acestream://abc"}]}; // ñ'


class TestDecodeResponseBody:
    """Supported encodings decode back to the original text."""

    def test_gzip(self):
        body = gzip.compress(TEXT.encode('utf-8'))
        assert decode_response_body(body, {'Content-Encoding': 'gzip'}) == TEXT

    def test_deflate_zlib_wrapped(self):
        body = zlib.compress(TEXT.encode('utf-8'))
        assert decode_response_body(body, {'content-encoding': 'deflate'}) == TEXT

    def test_deflate_raw(self):
        compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        body = compressor.compress(TEXT.encode('utf-8')) + compressor.flush()
        assert decode_response_body(body, {'Content-Encoding': 'deflate'}) == TEXT

    def test_brotli(self):
        body = brotli.compress(TEXT.encode('utf-8'))
        assert decode_response_body(body, {'Content-Encoding': 'br'}) == TEXT

    def test_no_encoding(self):
        assert decode_response_body(TEXT.encode('utf-8'), {}) == TEXT
        assert decode_response_body(TEXT.encode('utf-8'), None) == TEXT

    def test_unknown_encoding_passes_through(self):
        assert decode_response_body(b'plain body', {'Content-Encoding': 'zstd'}) == 'plain body'

    def test_stacked_encodings_undone_in_reverse(self):
        body = gzip.compress(zlib.compress(TEXT.encode('utf-8')))
        assert decode_response_body(body, {'Content-Encoding': 'deflate, gzip'}) == TEXT

    def test_empty_body(self):
        assert decode_response_body(b'', {'Content-Encoding': 'gzip'}) == ''


class TestDecodeErrors:
    """Bodies that do not match their declared encoding."""

    def test_corrupt_gzip(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_response_body(b'definitely not gzip', {'Content-Encoding': 'gzip'})
        assert exc_info.value.encoding == 'gzip'

    def test_corrupt_brotli(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_response_body(b'\x00\x01\x02 not brotli', {'Content-Encoding': 'br'})
        assert exc_info.value.encoding == 'br'


class TestHeaderValue:
    """Case-insensitive header lookup."""

    def test_lookup_ignores_case(self):
        assert header_value({'CONTENT-TYPE': 'text/html'}, 'content-type') == 'text/html'

    def test_repeated_values_joined(self):
        assert header_value({'Content-Encoding': ['gzip', 'br']}, 'content-encoding') == 'gzip, br'

    def test_missing(self):
        assert header_value({}, 'Content-Encoding') is None
