"""Logging helpers.

The store uses Python logging with a JSON formatter so record events can be
audited after the fact.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from kombucha_store.config.settings import load_yaml_mapping


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Common structured extras (when provided).
        for k in ("event", "collection", "record_id", "owner_id", "code"):
            v = getattr(record, k, None)
            if v is not None:
                base[k] = v

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=True, sort_keys=True)


def configure_logging(logging_config_path: Path) -> None:
    logging.config.dictConfig(load_yaml_mapping(logging_config_path))
