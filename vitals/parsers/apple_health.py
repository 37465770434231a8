"""
Vitals Core — Apple Health Export Scanner
Scans export.xml (or export.zip) in a single forward pass and returns typed
series for body composition, sleep, heart rate, activity and nutrition, plus
every workout with its statistics.

Memory stays flat no matter how big the export is: one line, at most one
open workout block, and the accepted records. No DOM, no SAX tree.
ZERO network imports. Stdlib only.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Generator, Iterable, Optional

from ..models import ScanResult, ScanStats
from . import records
from .lines import PathOrHandle, iter_lines
from .workouts import WorkoutAssembler

logger = logging.getLogger(__name__)


RECORD_TAG = "<Record"
PROGRESS_INTERVAL = 10_000

# Apple Health type identifiers → (result field, extractor).
# The closing quote keeps BodyMass from matching BodyMassIndex.
RECORD_KINDS = (
    ("HKQuantityTypeIdentifierBodyMass", "weight", records.extract_weight),
    ("HKQuantityTypeIdentifierBodyFatPercentage", "body_fat", records.extract_body_fat),
    ("HKQuantityTypeIdentifierLeanBodyMass", "lean_body_mass", records.extract_lean_body_mass),
    ("HKQuantityTypeIdentifierWaistCircumference", "waist_circumference", records.extract_waist),
    ("HKCategoryTypeIdentifierSleepAnalysis", "sleep", records.extract_sleep),
    ("HKQuantityTypeIdentifierRestingHeartRate", "resting_heart_rate", records.extract_resting_heart_rate),
    ("HKQuantityTypeIdentifierStepCount", "steps", records.extract_positive),
    ("HKQuantityTypeIdentifierActiveEnergyBurned", "active_energy", records.extract_positive),
    ("HKQuantityTypeIdentifierBasalEnergyBurned", "basal_energy", records.extract_positive),
    ("HKQuantityTypeIdentifierDietaryEnergyConsumed", "dietary_energy", records.extract_positive),
)

SERIES = tuple(kind for _, kind, _ in RECORD_KINDS) + ("workouts",)

_MARKERS = tuple((f'"{identifier}"', kind, extract) for identifier, kind, extract in RECORD_KINDS)


# ── Aggregator ────────────────────────────────────────────────────────────────

class _Aggregator:
    """Per-scan output lists and counters. One instance per scan, never shared."""

    def __init__(self):
        self.series = {kind: [] for kind in SERIES}
        self.lines_processed = 0
        self.records_found = 0
        self.start_time = datetime.now(timezone.utc)

    def add(self, kind: str, record):
        self.series[kind].append(record)
        self.records_found += 1

    def finish(self) -> ScanResult:
        end_time = datetime.now(timezone.utc)
        stats = ScanStats(
            lines_processed=self.lines_processed,
            records_found=self.records_found,
            start_time=self.start_time,
            end_time=end_time,
            duration_seconds=(end_time - self.start_time).total_seconds(),
        )
        return ScanResult(stats=stats, **{k: tuple(v) for k, v in self.series.items()})


# ── Scanner ───────────────────────────────────────────────────────────────────

class ExportScanner:
    """
    Line-at-a-time classifier. Feed it every line of the export in order,
    then call finish() once.

    Classification order per line:
      1. continuation or close of an open workout block
      2. opening of a new workout block
      3. single-line <Record> of one of the known types
    Anything else is counted and dropped.

    Example:
        >>> scanner = ExportScanner()
        >>> for line in iter_lines("export.xml"):
        ...     scanner.feed(line)
        >>> result = scanner.finish()
    """

    def __init__(self, progress: Optional[Callable[[int], None]] = None):
        self._agg = _Aggregator()
        self._workouts = WorkoutAssembler()
        self._progress = progress
        self._finished = False

    @property
    def lines_processed(self) -> int:
        return self._agg.lines_processed

    @property
    def records_found(self) -> int:
        return self._agg.records_found

    def feed(self, line: str) -> Optional[tuple]:
        """Process one line. Returns (kind, record) when a record was accepted."""
        if self._finished:
            raise RuntimeError("scanner already finished")

        agg = self._agg
        agg.lines_processed += 1
        if self._progress and agg.lines_processed % PROGRESS_INTERVAL == 0:
            self._progress(agg.lines_processed)

        consumed, workout = self._workouts.feed(line)
        if consumed:
            if workout is None:
                return None
            agg.add("workouts", workout)
            return "workouts", workout

        if RECORD_TAG not in line:
            return None
        for marker, kind, extract in _MARKERS:
            if marker in line:
                record = extract(line)
                if record is None:
                    return None
                agg.add(kind, record)
                return kind, record
        return None

    def finish(self) -> ScanResult:
        """
        Seal the scan. A workout block still open at end of input never
        closed, so it is dropped.
        """
        self._finished = True
        result = self._agg.finish()
        _log_summary(result, self._workouts.rejected)
        return result


def _log_summary(result: ScanResult, rejected_workouts: int):
    stats = result.stats
    logger.info(
        "Streaming parse complete: %s lines, %s records in %.2fs "
        "(weight=%s, workouts=%s, sleep=%s)",
        f"{stats.lines_processed:,}", f"{stats.records_found:,}", stats.duration_seconds,
        len(result.weight), len(result.workouts), len(result.sleep),
    )
    if rejected_workouts:
        logger.debug("Dropped %d workout blocks without activity type or start date",
                     rejected_workouts)


# ── Public API ────────────────────────────────────────────────────────────────

def scan_lines(lines: Iterable[str],
               progress: Optional[Callable[[int], None]] = None) -> ScanResult:
    """Scan an already-split sequence of lines (newlines optional)."""
    scanner = ExportScanner(progress=progress)
    for line in lines:
        scanner.feed(line.rstrip("\r\n"))
    return scanner.finish()


def scan(source: PathOrHandle,
         progress: Optional[Callable[[int], None]] = None) -> ScanResult:
    """
    Scan an Apple Health export and return everything it holds.

    Args:
        source: Path to export.xml or export.zip, or an open handle
        progress: Optional callback, called with the line count every
                  PROGRESS_INTERVAL lines

    Returns:
        ScanResult with one tuple per metric, the workouts, and scan stats.

    Raises:
        FileNotFoundError / OSError if the export can't be opened or read.
        Bad individual records never raise; they are skipped.

    Example:
        >>> result = scan("~/Downloads/export.zip")
        >>> print(f"Parsed {len(result.weight)} weight records")
    """
    return scan_lines(iter_lines(source), progress=progress)


def scan_stream(source: PathOrHandle) -> Generator[tuple, None, ScanResult]:
    """
    Streaming variant — yields (kind, record) tuples as records are accepted.
    Use for very large exports where you want to ingest as you parse.
    The generator's return value is the final ScanResult.
    """
    scanner = ExportScanner()
    for line in iter_lines(source):
        accepted = scanner.feed(line)
        if accepted is not None:
            yield accepted
    return scanner.finish()

