"""Sequential batch conversion with pause, resume and cancellation.

Units run one after another. Control requests (pause, cancel, stop) are
observed only between units, never while a unit is converting.

Usage:
    from datamorph.batch import build_units, run_batch

    units = build_units("data/", ConversionOptions(target_format="json"))
    report = run_batch(units, batch_size=5)
    print(report.summary())
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from datamorph.config import ConversionOptions
from datamorph.convert import ConversionResult, convert_file
from datamorph.errors import ConversionIOError
from datamorph.utils import detect_file_type

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CHECKPOINT_DECISIONS = ("continue", "pause", "stop")
PAUSE_DECISIONS = ("resume", "cancel")


@dataclass
class SourceFile:
    """A convertible file found in a folder."""

    path: Path
    file_type: str

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class BatchUnit:
    """One file and the options it is converted with."""

    path: PathLike
    options: ConversionOptions

    @property
    def name(self) -> str:
        return Path(self.path).name


@dataclass
class BatchProgress:
    """Snapshot of a running batch."""

    index: int
    total: int
    file_name: str
    converted: int
    skipped: int
    failed: int
    elapsed_seconds: float
    files_per_second: float
    eta_seconds: Optional[int] = None

    @property
    def percent_complete(self) -> int:
        return round(self.index / self.total * 100) if self.total else 100

    @property
    def eta_text(self) -> str:
        return f"ETA: {format_eta(self.eta_seconds)}" if self.eta_seconds else ""

    def describe(self) -> str:
        return (
            f"Converting {self.file_name} ({self.index}/{self.total}) - "
            f"{self.files_per_second:.2f} files/sec {self.eta_text}"
        ).rstrip()


@dataclass
class BatchReport:
    """Final counts and errors of a batch run."""

    batch_id: str
    total: int
    converted: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[ConversionResult] = field(default_factory=list)
    cancelled: bool = False
    stopped: bool = False
    elapsed_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.converted + self.skipped + self.failed

    @property
    def files_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.processed / self.elapsed_seconds

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.stopped:
            return "stopped"
        return "success" if self.failed == 0 else "partial_failure"

    def summary(self) -> str:
        return (
            f"Conversion {self.status} in {format_elapsed(self.elapsed_seconds)}. "
            f"Converted: {self.converted}, Skipped: {self.skipped}, "
            f"Failed: {self.failed}. "
            f"Average speed: {self.files_per_second:.2f} files/sec"
        )


class BatchControl:
    """Pause/resume/cancel requests for a running batch.

    Args:
        on_checkpoint: Called with a BatchProgress after every ``batch_size``
            units while more remain; returns "continue", "pause" or "stop"
        on_pause: Called at the next unit boundary while paused; returns
            "resume" or "cancel". Without it a pause cancels the batch.
    """

    def __init__(
        self,
        on_checkpoint: Optional[Callable[[BatchProgress], str]] = None,
        on_pause: Optional[Callable[[BatchProgress], str]] = None,
    ):
        self.on_checkpoint = on_checkpoint
        self.on_pause = on_pause
        self._paused = False
        self._cancelled = False

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ============================================
# Time formatting
# ============================================

def format_elapsed(seconds: float) -> str:
    """Render a duration: ``12.3s`` under a minute, else ``2m 5s``."""
    if round(seconds, 1) < 60:
        return f"{seconds:.1f}s"
    total = round(seconds)
    return f"{total // 60}m {total % 60}s"


def format_eta(seconds: int) -> str:
    """Render remaining time: ``45s``, ``3m`` or ``1h 2m``."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def estimate_eta(done: int, total: int, elapsed_seconds: float) -> Optional[int]:
    """Seconds left at the average speed so far (None before any unit ran)."""
    if done <= 0 or elapsed_seconds <= 0:
        return None
    speed = done / elapsed_seconds
    return round((total - done) / speed)


# ============================================
# Discovery
# ============================================

def discover_files(folder: PathLike) -> list[SourceFile]:
    """List convertible files directly inside ``folder``, sorted by name.

    Raises:
        ConversionIOError: If the folder cannot be listed
    """
    folder = Path(folder)
    try:
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise ConversionIOError(
            f"Cannot list {folder}: {e.strerror or e}", file_path=str(folder)
        ) from e

    files = [
        SourceFile(path=entry, file_type=detect_file_type(entry))
        for entry in entries
        if entry.is_file() and detect_file_type(entry) != "unknown"
    ]
    logger.debug(
        f"Found {len(files)} convertible files in {folder}",
        extra={"folder": str(folder), "file_count": len(files)},
    )
    return files


def build_units(folder: PathLike, options: ConversionOptions) -> list[BatchUnit]:
    """One unit per convertible file in ``folder``, all with ``options``."""
    return [BatchUnit(path=f.path, options=options) for f in discover_files(folder)]


# ============================================
# Runner
# ============================================

def _progress(
    report: BatchReport,
    index: int,
    file_name: str,
    done: int,
    elapsed: float,
) -> BatchProgress:
    return BatchProgress(
        index=index,
        total=report.total,
        file_name=file_name,
        converted=report.converted,
        skipped=report.skipped,
        failed=report.failed,
        elapsed_seconds=elapsed,
        files_per_second=done / elapsed if done and elapsed > 0 else 0.0,
        eta_seconds=estimate_eta(done, report.total, elapsed),
    )


def _decide(callback: Callable, progress: BatchProgress, allowed: tuple) -> str:
    decision = callback(progress)
    if decision not in allowed:
        raise ValueError(f"Expected one of {allowed}, got {decision!r}")
    return decision


def _run_unit(unit: BatchUnit, report: BatchReport, batch_id: str) -> None:
    try:
        result = convert_file(unit.path, options=unit.options, batch_id=batch_id)
    except Exception as e:
        report.failed += 1
        message = f"Error converting {unit.name}: {getattr(e, 'message', str(e))}"
        report.errors.append(message)
        logger.error(
            message,
            exc_info=True,
            extra={"batch_id": batch_id, "source": unit.name},
        )
        return

    report.results.append(result)
    if result.converted:
        report.converted += 1
    else:
        report.skipped += 1


def run_batch(
    units: list[BatchUnit],
    control: Optional[BatchControl] = None,
    batch_size: int = 5,
    on_progress: Optional[Callable[[BatchProgress], None]] = None,
    batch_id: Optional[str] = None,
) -> BatchReport:
    """Convert units in order, continuing past individual failures.

    Args:
        units: Ordered files with their options
        control: Pause/cancel requests and checkpoint callbacks
        batch_size: Units between checkpoints
        on_progress: Called before each unit with a BatchProgress
        batch_id: Identifier for log correlation (generated when omitted)

    Returns:
        BatchReport with counts, collected error messages and flags
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    control = control or BatchControl()
    batch_id = batch_id or uuid.uuid4().hex[:12]
    report = BatchReport(batch_id=batch_id, total=len(units))
    start = time.monotonic()

    logger.info(
        f"Starting batch of {len(units)} files",
        extra={"batch_id": batch_id, "total": len(units), "batch_size": batch_size},
    )

    for i, unit in enumerate(units):
        if control.cancelled:
            report.cancelled = True
            break

        progress = _progress(report, i + 1, unit.name, i, time.monotonic() - start)

        if control.paused:
            decision = (
                _decide(control.on_pause, progress, PAUSE_DECISIONS)
                if control.on_pause
                else "cancel"
            )
            if decision == "resume":
                control.resume()
            else:
                control.cancel()
                report.cancelled = True
                break

        if on_progress:
            on_progress(progress)

        _run_unit(unit, report, batch_id)

        more_remaining = i < len(units) - 1
        if (i + 1) % batch_size == 0 and more_remaining and control.on_checkpoint:
            checkpoint = _progress(report, i + 1, unit.name, i + 1, time.monotonic() - start)
            decision = _decide(control.on_checkpoint, checkpoint, CHECKPOINT_DECISIONS)
            if decision == "stop":
                report.stopped = True
                break
            if decision == "pause":
                control.pause()

    report.elapsed_seconds = time.monotonic() - start

    log = logger.warning if report.failed else logger.info
    log(
        report.summary(),
        extra={
            "batch_id": batch_id,
            "status": report.status,
            "converted": report.converted,
            "skipped": report.skipped,
            "failed": report.failed,
            "duration_seconds": report.elapsed_seconds,
        },
    )
    return report
