"""
Reference-graph payload decoding.

Hydration payloads such as Nuxt 3's __NUXT_DATA__ store every distinct
value once in a flat JSON array. Containers refer to other entries by
integer index:

    [{"channels": 1}, [2], {"name": 3, "url": 4}, "Channel One", "acestream://..."]

Index 0 is the root. Negative indices are constants (undefined, NaN, ...).
Lists starting with a type name are tagged values: ["Reactive", 5],
["Set", 1, 2], ["Map", k, v], ["Date", "..."], ["null", key, idx, ...].

Resolution is iterative with memoisation; a reference back into a node
still being resolved is a cycle and fails the decode.
"""
import math
from typing import Any, Dict, List

_CONSTANTS = {
    -1: None,           # undefined
    -2: None,           # array hole
    -3: math.nan,
    -4: math.inf,
    -5: -math.inf,
    -6: -0.0,
}

# Tagged values holding a single reference to unwrap
WRAPPER_TYPES = {
    'Reactive', 'ShallowReactive', 'Ref', 'ShallowRef', 'NuxtError', 'Island',
}
EMPTY_TYPES = {'EmptyRef', 'EmptyShallowRef'}
VERBATIM_TYPES = {'Date', 'RegExp', 'BigInt', 'Object', 'URL'}


class PayloadError(ValueError):
    """Payload is not a well-formed reference graph."""


class PayloadCycleError(PayloadError):
    """Payload references form a cycle."""


def resolve_payload(nodes: List[Any], root: int = 0) -> Any:
    """Rebuild the value graph rooted at nodes[root]."""
    if not isinstance(nodes, list) or not nodes:
        raise PayloadError("Payload must be a non-empty array")
    if _is_constant(root):
        return _CONSTANTS[root]
    _check_index(root, nodes)

    memo: Dict[int, Any] = {}
    in_progress = set()
    stack = [(root, False)]

    while stack:
        index, children_done = stack.pop()
        if children_done:
            memo[index] = _build(nodes[index], memo)
            in_progress.discard(index)
            continue
        if index in memo:
            continue
        if index in in_progress:
            raise PayloadCycleError(f"Reference cycle through index {index}")

        in_progress.add(index)
        stack.append((index, True))
        for child in reversed(_children(nodes[index])):
            if _is_constant(child):
                continue
            _check_index(child, nodes)
            if child not in memo:
                stack.append((child, False))

    return memo[root]


def _check_index(index: Any, nodes: List[Any]) -> None:
    if isinstance(index, bool) or not isinstance(index, int):
        raise PayloadError(f"Reference must be an integer, got {index!r}")
    if not 0 <= index < len(nodes):
        raise PayloadError(f"Reference {index} out of range")


def _tag(node: Any):
    if isinstance(node, list) and node and isinstance(node[0], str):
        return node[0]
    return None


def _children(node: Any) -> List[int]:
    """Indices a node refers to, in order."""
    tag = _tag(node)
    if tag is not None:
        if tag in VERBATIM_TYPES or tag in EMPTY_TYPES:
            return []
        if tag == 'null':
            return list(node[2::2])
        if tag in ('Set', 'Map'):
            return list(node[1:])
        if tag in WRAPPER_TYPES or len(node) == 2:
            return [node[1]]
        raise PayloadError(f"Unsupported tagged value '{tag}'")
    if isinstance(node, list):
        return list(node)
    if isinstance(node, dict):
        return list(node.values())
    return []


def _is_constant(ref: Any) -> bool:
    return isinstance(ref, int) and not isinstance(ref, bool) and ref in _CONSTANTS


def _value(ref: int, memo: Dict[int, Any]) -> Any:
    if _is_constant(ref):
        return _CONSTANTS[ref]
    return memo[ref]


def _build(node: Any, memo: Dict[int, Any]) -> Any:
    tag = _tag(node)
    if tag is not None:
        if tag in EMPTY_TYPES:
            return None
        if tag in VERBATIM_TYPES:
            return node[1] if len(node) > 1 else None
        if tag == 'null':
            return {str(key): _value(ref, memo) for key, ref in zip(node[1::2], node[2::2])}
        if tag == 'Set':
            return [_value(ref, memo) for ref in node[1:]]
        if tag == 'Map':
            refs = node[1:]
            return {str(_value(k, memo)): _value(v, memo) for k, v in zip(refs[0::2], refs[1::2])}
        return _value(node[1], memo)
    if isinstance(node, list):
        return [_value(ref, memo) for ref in node]
    if isinstance(node, dict):
        return {key: _value(ref, memo) for key, ref in node.items()}
    return node
