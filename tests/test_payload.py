"""Test reference-graph payload resolution."""
import math

import pytest

from streamwarp.extraction import PayloadCycleError, PayloadError, resolve_payload


class TestResolvePayload:
    """Index references rebuild the original value graph."""

    def test_simple_graph(self):
        nodes = [{'channels': 1}, [2], {'name': 3, 'url': 4}, 'Channel One', 'acestream://a']
        assert resolve_payload(nodes) == {'channels': [{'name': 'Channel One', 'url': 'acestream://a'}]}

    def test_wrappers_unwrapped(self):
        nodes = [['ShallowReactive', 1], {'data': 2}, ['Reactive', 3], {'title': 4}, 'Live']
        assert resolve_payload(nodes) == {'data': {'title': 'Live'}}

    def test_shared_nodes_resolved_once(self):
        nodes = [{'a': 1, 'b': 1}, {'x': 2}, 'shared']
        result = resolve_payload(nodes)
        assert result['a'] is result['b']

    def test_constants(self):
        nodes = [{'u': -1, 'hole': -2, 'nan': -3, 'inf': -4, 'ninf': -5}]
        result = resolve_payload(nodes)
        assert result['u'] is None and result['hole'] is None
        assert math.isnan(result['nan'])
        assert result['inf'] == math.inf and result['ninf'] == -math.inf

    def test_tagged_values(self):
        nodes = [
            {'when': 1, 'tags': 2, 'lookup': 4, 'bare': 7},
            ['Date', '2024-05-01T00:00:00.000Z'],
            ['Set', 3],
            'live',
            ['Map', 5, 6],
            'key',
            'value',
            ['null', 'k', 3],
        ]
        assert resolve_payload(nodes) == {
            'when': '2024-05-01T00:00:00.000Z',
            'tags': ['live'],
            'lookup': {'key': 'value'},
            'bare': {'k': 'live'},
        }

    def test_empty_refs(self):
        assert resolve_payload([{'r': 1}, ['EmptyRef']]) == {'r': None}

    def test_deep_chain_does_not_recurse(self):
        depth = 5000
        nodes = [[i + 1] for i in range(depth)] + ['leaf']
        result = resolve_payload(nodes)
        for _ in range(depth):
            result = result[0]
        assert result == 'leaf'


class TestMalformedPayload:
    """Broken graphs fail with PayloadError."""

    def test_cycle(self):
        with pytest.raises(PayloadCycleError):
            resolve_payload([{'self': 1}, {'back': 0}])

    def test_out_of_range(self):
        with pytest.raises(PayloadError):
            resolve_payload([{'a': 5}])

    def test_non_integer_reference(self):
        with pytest.raises(PayloadError):
            resolve_payload([{'a': 'x'}])

    def test_empty(self):
        with pytest.raises(PayloadError):
            resolve_payload([])

    def test_unknown_tag(self):
        with pytest.raises(PayloadError):
            resolve_payload([['Mystery', 1, 2]])
