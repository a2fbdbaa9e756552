"""Small utility helpers used across the record store."""

from __future__ import annotations

import json
import secrets
import time
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any

# Firebase-compatible push id alphabet (ordered by ASCII value).
_PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def now_millis() -> int:
    return int(time.time() * 1000)


def millis_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=True, sort_keys=True, separators=(",", ":"))


def prune_nulls(value: Any) -> Any:
    """Return a copy of value with every None-valued mapping entry removed."""
    if isinstance(value, dict):
        return {k: prune_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [prune_nulls(v) for v in value]
    return deepcopy(value)


class PushIdGenerator:
    """Generates 20-character ids that sort in creation order.

    The first 8 characters encode the timestamp; the remaining 12 are random.
    Ids generated within the same millisecond increment the random part so they
    still sort correctly.
    """

    def __init__(self, clock=now_millis):
        self._clock = clock
        self._last_ts = -1
        self._last_rand = [0] * 12

    def __call__(self) -> str:
        ts = int(self._clock())
        duplicate = ts == self._last_ts
        self._last_ts = ts

        time_chars = []
        for _ in range(8):
            time_chars.append(_PUSH_CHARS[ts % 64])
            ts //= 64
        time_part = "".join(reversed(time_chars))

        if not duplicate:
            self._last_rand = [secrets.randbelow(64) for _ in range(12)]
        else:
            i = 11
            while i >= 0 and self._last_rand[i] == 63:
                self._last_rand[i] = 0
                i -= 1
            if i >= 0:
                self._last_rand[i] += 1

        return time_part + "".join(_PUSH_CHARS[r] for r in self._last_rand)
