"""Path helpers shared by the tree store drivers."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from kombucha_store.errors import ContractViolationError
from kombucha_store.utils import prune_nulls

_FORBIDDEN_KEY_CHARS = frozenset(".#$[]/")


def validate_key(key: str) -> str:
    if not key or any(c in _FORBIDDEN_KEY_CHARS for c in key):
        raise ContractViolationError(f"Invalid key: {key!r}", code="INVALID_KEY")
    return key


def split_path(path: str) -> list[str]:
    return [validate_key(seg) for seg in path.strip("/").split("/") if seg]


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def get_in(node: Any, segments: list[str]) -> Any | None:
    cur = node
    for seg in segments:
        if not isinstance(cur, dict) or seg not in cur:
            return None
        cur = cur[seg]
    return deepcopy(cur)


def set_in(node: Any, segments: list[str], value: Any) -> Any | None:
    """Return a copy of node with value placed at segments.

    A None value deletes the target; containers emptied by that delete are
    removed as well.
    """
    if not segments:
        return prune_nulls(value)

    base = dict(node) if isinstance(node, dict) else {}
    child = set_in(base.get(segments[0]), segments[1:], value)
    if child is None:
        removed = base.pop(segments[0], None)
        if removed is None:
            return deepcopy(node) if isinstance(node, dict) else None
        if not base:
            return None
    else:
        base[segments[0]] = child
    return base
