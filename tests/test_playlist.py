"""Test playlist rendering and writing."""
import json

import pytest

from streamwarp.errors import ConfigValidationError
from streamwarp.extraction import ChannelLink
from streamwarp.playlist import render_json, render_m3u, write_playlist

LINKS = [
    ChannelLink('Canal Uno', 'acestream://aaa'),
    ChannelLink('Sports HD', 'https://cdn.example.com/sports/index.m3u8'),
]


class TestRenderM3u:
    """Exact M3U layout."""

    def test_layout(self):
        assert render_m3u(LINKS) == (
            '#EXTM3U\n'
            '#EXTINF:-1 group-title="Canal Uno" tvg-id="Canal Uno",Canal Uno\n'
            'acestream://aaa\n'
            '#EXTINF:-1 group-title="Sports HD" tvg-id="Sports HD",Sports HD\n'
            'https://cdn.example.com/sports/index.m3u8\n'
        )

    def test_header_only_when_empty(self):
        assert render_m3u([]) == '#EXTM3U\n'


class TestRenderJson:
    """Pretty-printed channel list."""

    def test_layout(self):
        text = render_json(LINKS[:1])
        assert text == (
            '{\n'
            '  "channels": [\n'
            '    {\n'
            '      "name": "Canal Uno",\n'
            '      "url": "acestream://aaa"\n'
            '    }\n'
            '  ]\n'
            '}\n'
        )

    def test_parses_back(self):
        assert json.loads(render_json(LINKS)) == {'channels': [link.to_dict() for link in LINKS]}


class TestWritePlaylist:
    """Files are written only when there is something to write."""

    def test_writes_m3u(self, tmp_path):
        path = write_playlist(LINKS, tmp_path / 'out' / 'playlist.m3u')
        assert path.read_text(encoding='utf-8') == render_m3u(LINKS)

    def test_writes_json(self, tmp_path):
        path = write_playlist(LINKS, tmp_path / 'playlist.json', 'json')
        assert json.loads(path.read_text(encoding='utf-8'))['channels'][1]['name'] == 'Sports HD'

    def test_empty_aggregate_writes_nothing(self, tmp_path):
        target = tmp_path / 'playlist.m3u'
        assert write_playlist([], target) is None
        assert not target.exists()

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ConfigValidationError):
            write_playlist(LINKS, tmp_path / 'x', 'xspf')
