"""
Recovered-failure bookkeeping for optimization runs.

A proposal that fails does not end an optimization run. The loop records
it in an ErrorCollector, keeps going, and hands the records back on
OptimizationResult.errors.
"""

import logging
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class PipelineError:
    """One failure a run survived (or, with recoverable=False, did not)."""

    layer: str       # "optimizer", "embeddings", ...
    operation: str   # "propose", "evaluate", ...
    message: str
    severity: Severity = Severity.MEDIUM
    recoverable: bool = True
    exception_type: Optional[str] = None
    iteration: Optional[int] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer,
            "operation": self.operation,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "exception_type": self.exception_type,
            "iteration": self.iteration,
            "timestamp": self.timestamp,
        }


class ErrorCollector:
    """Accumulates PipelineError records for a single run."""

    def __init__(self):
        self.errors: List[PipelineError] = []

    def add_error(
        self,
        layer: str,
        operation: str,
        message: str,
        severity: str = "medium",
        recoverable: bool = True,
        exception: Optional[BaseException] = None,
        iteration: Optional[int] = None,
    ) -> PipelineError:
        error = PipelineError(
            layer=layer,
            operation=operation,
            message=message,
            severity=Severity(severity),
            recoverable=recoverable,
            exception_type=type(exception).__name__ if exception is not None else None,
            iteration=iteration,
        )
        self.errors.append(error)
        return error

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.errors]

    def summary(self) -> Dict[str, Any]:
        counts = Counter(e.severity for e in self.errors)
        return {
            "total": len(self.errors),
            "by_severity": {s.value: counts.get(s, 0) for s in Severity},
            "recoverable": sum(1 for e in self.errors if e.recoverable),
        }


@contextmanager
def log_on_exception(
    logger: logging.Logger,
    operation: str,
    level: int = logging.WARNING,
    include_traceback: bool = False,
) -> Iterator[None]:
    """
    Log an exception raised inside the block, then let it propagate.

    Usage:
        with log_on_exception(logger, "embed persona slots", level=logging.ERROR):
            vectors = await gateway.embed_batch(texts)
    """
    try:
        yield
    except Exception as e:
        logger.log(level, f"[{operation}] Failed: {e}", exc_info=include_traceback)
        raise
