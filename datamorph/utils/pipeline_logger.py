"""Structured logging utilities for conversion observability.

Provides consistent logging format with required fields:
- source
- batch_id
- step
- row_count
- output_path
- duration_ms
"""

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class ConversionLogContext:
    """Context for conversion logging with required fields."""

    source: str
    batch_id: str
    step: str = ""
    row_count: Optional[int] = None
    output_path: Optional[str] = None
    duration_ms: Optional[float] = None
    status: str = "started"
    error: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        data = asdict(self)
        data["timestamp"] = datetime.now(timezone.utc).isoformat()
        # Remove None values
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class ConversionLogger:
    """Structured logger for the steps of one conversion unit."""

    def __init__(self, source: str, batch_id: str):
        """Initialize conversion logger.

        Args:
            source: Source file name
            batch_id: Identifier shared by every unit of a batch run
        """
        self.source = source
        self.batch_id = batch_id
        self.logger = logging.getLogger("datamorph.conversion")
        self._start_time: Optional[float] = None
        self._steps: list[str] = []

    def _log(self, level: int, step: str, **kwargs) -> None:
        ctx = ConversionLogContext(
            source=self.source,
            batch_id=self.batch_id,
            step=step,
            **kwargs
        )
        self.logger.log(level, ctx.to_json(), extra=ctx.to_dict())

    def _elapsed_ms(self) -> Optional[float]:
        if self._start_time is None:
            return None
        return (time.time() - self._start_time) * 1000

    def start(self, step: str) -> None:
        """Log step start."""
        self._start_time = time.time()
        self._steps.append(step)
        self._log(logging.DEBUG, step, status="started")

    def success(self, step: str, **kwargs) -> None:
        """Log step success."""
        self._log(
            logging.INFO,
            step,
            status="success",
            duration_ms=self._elapsed_ms(),
            **kwargs
        )

    def skipped(self, step: str, reason: str) -> None:
        """Log a unit that was skipped without converting."""
        self._log(logging.INFO, step, status="skipped", extra={"reason": reason})

    def error(self, step: str, error: Exception, **kwargs) -> None:
        """Log step error."""
        self._log(
            logging.ERROR,
            step,
            status="error",
            error=str(error),
            duration_ms=self._elapsed_ms(),
            **kwargs
        )

    def log_write(
        self,
        output_path: str,
        row_count: int,
        file_size_bytes: int,
        duration_ms: float,
    ) -> None:
        """Log an output file write."""
        self._log(
            logging.INFO,
            step="write",
            status="success",
            output_path=output_path,
            row_count=row_count,
            duration_ms=duration_ms,
            extra={"file_size_bytes": file_size_bytes},
        )

    def log_transform(
        self,
        kind: str,
        input_count: Optional[int],
        output_count: Optional[int],
        duration_ms: float,
    ) -> None:
        """Log a post-conversion transformation step."""
        self._log(
            logging.INFO,
            step="transform",
            status="success",
            row_count=output_count,
            duration_ms=duration_ms,
            extra={
                "kind": kind,
                "input_count": input_count,
                "output_count": output_count,
            },
        )

    @property
    def steps(self) -> list[str]:
        return list(self._steps)
