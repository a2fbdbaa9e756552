"""Batch codes and lineage.

A batch code looks like `YYYYMMDD-NNNN-TTTT`: the brew date, the sequential
batch number for that day and a four-character type code. A child batch
(e.g. a 2F split) inherits its parent's lineage with its own code appended.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping

TYPE_CODES: dict[str, str] = {
    "1F": "1F00",
    "2F": "2F00",
    "KEG": "KEG0",
    "BTL": "BTL0",
}

# Batch records name the bottled type BOTTLE; codes abbreviate it.
BATCH_TYPE_TO_CODE_TYPE: dict[str, str] = {"1F": "1F", "2F": "2F", "KEG": "KEG", "BOTTLE": "BTL"}

_CODE_RE = re.compile(r"(\d{8})-(\d{4})-(1F00|2F00|KEG0|BTL0)")
_TYPE_BY_CODE = {v: k for k, v in TYPE_CODES.items()}


@dataclass(frozen=True)
class BatchCodeParts:
    date: date
    batch_number: int
    batch_type: str


def generate_batch_code(on: date | datetime, batch_number: int, batch_type: str) -> str:
    if not 1 <= batch_number <= 9999:
        raise ValueError(f"batch_number must be between 1 and 9999 (got {batch_number})")
    if batch_type not in TYPE_CODES:
        raise ValueError(f"Unknown batch type: {batch_type}")
    return f"{on.strftime('%Y%m%d')}-{batch_number:04d}-{TYPE_CODES[batch_type]}"


def create_batch_code(
    on: date | datetime,
    batch_number: int,
    batch_type: str,
    parent: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a BatchCode record, inheriting lineage from the parent's BatchCode."""
    code = generate_batch_code(on, batch_number, batch_type)
    batch_code: dict[str, Any] = {"code": code, "childCodes": [], "lineage": [code]}
    if parent is not None:
        batch_code["parentCode"] = str(parent["code"])
        batch_code["lineage"] = get_batch_lineage(parent) + [code]
    return batch_code


def get_batch_lineage(batch_code: Mapping[str, Any]) -> list[str]:
    """Codes from the root batch down to (and including) this one."""
    lineage = [str(c) for c in batch_code.get("lineage") or []]
    code = str(batch_code["code"])
    if not lineage or lineage[-1] != code:
        lineage.append(code)
    return lineage


def is_valid_batch_code(code: str) -> bool:
    m = _CODE_RE.fullmatch(code)
    if m is None:
        return False
    try:
        datetime.strptime(m.group(1), "%Y%m%d")
    except ValueError:
        return False
    return int(m.group(2)) >= 1


def parse_batch_code(code: str) -> BatchCodeParts | None:
    if not is_valid_batch_code(code):
        return None
    date_str, number_str, type_str = _CODE_RE.fullmatch(code).groups()
    return BatchCodeParts(
        date=datetime.strptime(date_str, "%Y%m%d").date(),
        batch_number=int(number_str),
        batch_type=_TYPE_BY_CODE[type_str],
    )


def next_batch_number(existing_codes: Iterable[str], on: date | datetime) -> int:
    """One more than the highest batch number already used on that day."""
    day = on.date() if isinstance(on, datetime) else on
    highest = 0
    for code in existing_codes:
        parts = parse_batch_code(code)
        if parts is not None and parts.date == day:
            highest = max(highest, parts.batch_number)
    return highest + 1
