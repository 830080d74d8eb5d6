"""
Logging setup for ranking and optimization runs.

Every operation gets a run id; messages logged through a PipelineLogger
carry it as a short prefix together with the stage that emitted them:

    [run:3f2a9c1e] [optimizer] Iteration 2/4: spearman=0.612

so interleaved runs stay readable in one stream.
"""

import json
import logging
import sys
import uuid
from typing import Any, MutableMapping, Optional, Tuple


class PipelineLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with run id and stage."""

    def __init__(self, logger: logging.Logger, run_id: Optional[str] = None, layer: Optional[str] = None):
        super().__init__(logger, {"run_id": run_id, "layer": layer})
        self.run_id = run_id
        self.layer = layer

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        tags = []
        if self.run_id:
            tags.append(f"[run:{self.run_id[:8]}]")
        if self.layer:
            tags.append(f"[{self.layer}]")
        if not tags:
            return msg, kwargs
        return f"{' '.join(tags)} {msg}", kwargs


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def new_run_id() -> str:
    return uuid.uuid4().hex


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure the root logger for CLI use.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        format: "simple" for human-readable lines, "json" for one object per line
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


def get_logger(name: str, run_id: Optional[str] = None, layer: Optional[str] = None) -> PipelineLogger:
    """
    Get a run-scoped logger.

    Args:
        name: Logger name (usually __name__)
        run_id: Run identifier from new_run_id(), if the caller has one
        layer: Stage name, e.g. "scoring" or "optimizer"
    """
    return PipelineLogger(logging.getLogger(name), run_id, layer)
