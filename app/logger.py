from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

# Process-wide sinks: stderr, a shared rotating log under LOG_DIR, and an
# errors-only file. Configured once; later calls reuse the existing sinks.
_sink_ids: list[int] = []


def configure_logging(log_dir: Path, level: str = "INFO") -> list[int]:
    if _sink_ids:
        return _sink_ids
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.remove()
    _sink_ids.append(logger.add(sys.stderr, level=level))
    _sink_ids.append(logger.add(log_dir / "global.log", rotation="10 MB", level=level))
    _sink_ids.append(logger.add(log_dir / "errors.log", rotation="1 MB", level="ERROR"))
    logger.debug(f"Logging to {log_dir}")
    return _sink_ids
