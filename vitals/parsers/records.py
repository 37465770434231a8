"""
Vitals Core — Record Field Extractors
Pulls attributes out of single-line <Record .../> elements with plain text
search, converts units and applies plausibility filters.

Every extractor returns the finished record or None. Nothing here raises on
bad input: a record that can't be read is simply not a record.
ZERO network imports. Stdlib only.
"""

import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from ..models import DEFAULT_SOURCE, MeasurementRecord, SleepRecord


# Plausibility bounds
WEIGHT_RANGE = (40.0, 200.0)         # inclusive
LEAN_MASS_RANGE = (30.0, 150.0)      # inclusive
BODY_FAT_RANGE = (0.0, 60.0)         # exclusive
RESTING_HR_RANGE = (30.0, 150.0)     # exclusive
MAX_SLEEP_HOURS = 24.0

# Unit inference. Exports carry no reliable unit for these, so the value
# range decides: fractions are percentages, big waists are centimetres.
BODY_FAT_FRACTION_BELOW = 1.0
WAIST_CM_ABOVE = 50.0
CM_PER_INCH = 2.54


# ── Helpers ───────────────────────────────────────────────────────────────────

@lru_cache(maxsize=None)
def _attr_pattern(name: str) -> "re.Pattern":
    # Attribute must start a token so "value" never matches inside another name.
    return re.compile(r'(?<![\w:-])' + re.escape(name) + r'="([^"]+)"')


def attr(text: str, name: str) -> Optional[str]:
    """First name="value" occurrence in text, or None."""
    m = _attr_pattern(name).search(text)
    return m.group(1) if m else None


def to_float(val: Optional[str]) -> Optional[float]:
    """Safely parse float, return None if missing, invalid, or not finite."""
    if val is None:
        return None
    try:
        parsed = float(val.strip())
    except ValueError:
        return None
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return None
    return parsed


def parse_date(date_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an Apple Health date string like ``2024-11-11 17:57:08 -0500``
    into a timezone-aware datetime. Offset-less stamps are taken as UTC.
    """
    if not date_str:
        return None
    s = date_str.strip()
    try:
        return datetime.strptime(s, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        pass
    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            dt = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def _sample(line: str) -> Optional[tuple]:
    """(value, startDate, source) for a quantity line, or None."""
    value = to_float(attr(line, "value"))
    date = attr(line, "startDate")
    if value is None or date is None:
        return None
    return value, date, attr(line, "sourceName") or DEFAULT_SOURCE


def _in_closed(value: float, bounds: tuple) -> bool:
    return bounds[0] <= value <= bounds[1]


def _in_open(value: float, bounds: tuple) -> bool:
    return bounds[0] < value < bounds[1]


# ── Extractors ────────────────────────────────────────────────────────────────

def extract_weight(line: str) -> Optional[MeasurementRecord]:
    sample = _sample(line)
    if sample is None or not _in_closed(sample[0], WEIGHT_RANGE):
        return None
    return MeasurementRecord(*sample)


def extract_body_fat(line: str) -> Optional[MeasurementRecord]:
    """Body fat arrives as a fraction (0.21) from most sources; store percent."""
    sample = _sample(line)
    if sample is None:
        return None
    value, date, source = sample
    if value < BODY_FAT_FRACTION_BELOW:
        value *= 100
    if not _in_open(value, BODY_FAT_RANGE):
        return None
    return MeasurementRecord(value, date, source)


def extract_lean_body_mass(line: str) -> Optional[MeasurementRecord]:
    sample = _sample(line)
    if sample is None or not _in_closed(sample[0], LEAN_MASS_RANGE):
        return None
    return MeasurementRecord(*sample)


def extract_waist(line: str) -> Optional[MeasurementRecord]:
    """Stored in inches. Values above 50 are assumed to be centimetres."""
    sample = _sample(line)
    if sample is None or sample[0] <= 0:
        return None
    value, date, source = sample
    if value > WAIST_CM_ABOVE:
        value = value / CM_PER_INCH
    return MeasurementRecord(value, date, source)


def extract_resting_heart_rate(line: str) -> Optional[MeasurementRecord]:
    sample = _sample(line)
    if sample is None or not _in_open(sample[0], RESTING_HR_RANGE):
        return None
    return MeasurementRecord(*sample)


def extract_positive(line: str) -> Optional[MeasurementRecord]:
    """Steps and the energy kinds: anything above zero is kept."""
    sample = _sample(line)
    if sample is None or sample[0] <= 0:
        return None
    return MeasurementRecord(*sample)


def extract_sleep(line: str) -> Optional[SleepRecord]:
    """
    Sleep intervals need both ends; duration is end - start in hours.
    Only values naming an asleep state count as asleep ("InBed" does not),
    but in-bed intervals are still kept.
    """
    start_raw = attr(line, "startDate")
    start = parse_date(start_raw)
    end = parse_date(attr(line, "endDate"))
    if start is None or end is None:
        return None

    duration = (end - start).total_seconds() / 3600
    if not 0 < duration < MAX_SLEEP_HOURS:
        return None

    state = attr(line, "value") or ""
    return SleepRecord(
        date=start_raw,
        duration=duration,
        is_asleep="Asleep" in state or "asleep" in state,
    )
