"""
Vitals Core — Workout Block Assembler
Workouts are the one element in export.xml that spans many lines: a
<Workout ...> opening tag, then nested WorkoutStatistics, WorkoutEvent,
MetadataEntry and route lines, then </Workout>. The assembler collects one
such block at a time and turns it into a WorkoutRecord when the block closes.
ZERO network imports. Stdlib only.
"""

import math
import re
from enum import Enum
from typing import Optional

from ..models import WorkoutRecord
from .records import DEFAULT_SOURCE, attr, parse_date, to_float


OPEN_MARKER = re.compile(r"<Workout[\s>/]")
CLOSE_MARKER = "</Workout>"
STATISTICS_TAGS = ("WorkoutStatistics", "HeartRateStatistics")

ACTIVITY_PREFIX = "HKWorkoutActivityType"

HEART_RATE = "HKQuantityTypeIdentifierHeartRate"
ACTIVE_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
DISTANCE_TYPES = (
    "HKQuantityTypeIdentifierDistanceWalkingRunning",
    "HKQuantityTypeIdentifierDistanceCycling",
    "HKQuantityTypeIdentifierDistanceSwimming",
)

# (start of the statistics tag, attribute on it, field it fills)
STATISTICS_FIELDS = (
    (f'type="{HEART_RATE}"', "average", "avg_heart_rate"),
    (f'type="{HEART_RATE}"', "maximum", "max_heart_rate"),
    ("<HeartRateStatistics", "average", "avg_heart_rate"),
    ("<HeartRateStatistics", "maximum", "max_heart_rate"),
    (f'type="{ACTIVE_ENERGY}"', "sum", "active_calories"),
    (f'type="{STEP_COUNT}"', "sum", "steps"),
) + tuple((f'type="{t}"', "sum", "distance") for t in DISTANCE_TYPES)

# Workout metadata only consulted when no statistics carried the value.
# Values may carry a unit suffix ("142 count/min").
METADATA_FALLBACKS = (
    ("HKAverageHeartRate", "avg_heart_rate"),
    ("HKMaximumHeartRate", "max_heart_rate"),
)

# Checked in order; first hit wins.
CATEGORY_KEYWORDS = (
    (("walk",), "walking"),
    (("run",), "running"),
    (("cycl", "bike"), "cycling"),
    (("swim",), "swimming"),
    (("strength", "training"), "strength"),
    (("hiit",), "hiit"),
    (("yoga",), "yoga"),
    (("elliptical",), "elliptical"),
)

_CAPITAL = re.compile(r"([A-Z])")


# ── Type helpers ──────────────────────────────────────────────────────────────

def clean_activity_type(raw: str) -> str:
    """HKWorkoutActivityTypeTraditionalStrengthTraining -> 'Traditional Strength Training'"""
    name = raw.replace(ACTIVITY_PREFIX, "", 1)
    return _CAPITAL.sub(r" \1", name).strip()


def categorize(type_name: str) -> str:
    # Spaces dropped so "H I I T" (from HKWorkoutActivityTypeHIIT) still reads as hiit
    lowered = type_name.lower().replace(" ", "")
    for keywords, category in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return "other"


def _round(value: float) -> int:
    """Half-up rounding, so 142.5 bpm reads as 143 rather than 142."""
    return int(math.floor(value + 0.5))


def _statistic_patterns():
    patterns = []
    for tag_start, attribute, field_name in STATISTICS_FIELDS:
        rx = re.compile(
            re.escape(tag_start) + r'[^>]*?(?<![\w:-])' + attribute + r'="([^"]+)"'
        )
        patterns.append((field_name, rx))
    return tuple(patterns)


_STATISTIC_PATTERNS = _statistic_patterns()

_METADATA_PATTERNS = tuple(
    (field_name, re.compile(r'key="' + key + r'"[^>]*?(?<![\w:-])value="\s*([-+]?[\d.]+)'))
    for key, field_name in METADATA_FALLBACKS
)


def _statistics_in(text: str, last_wins: bool) -> dict:
    """
    Collect statistics from text. A single line merges last-seen-wins;
    the whole-block sweep keeps the first hit of each pattern.
    """
    found = {}
    for field_name, rx in _STATISTIC_PATTERNS:
        matches = rx.findall(text)
        values = [v for v in (to_float(m) for m in matches) if v is not None]
        if not values:
            continue
        found[field_name] = values[-1] if last_wins else values[0]
    return found


def _metadata_in(block: str) -> dict:
    found = {}
    for field_name, rx in _METADATA_PATTERNS:
        m = rx.search(block)
        value = to_float(m.group(1)) if m else None
        if value is not None:
            found[field_name] = value
    return found


def _opening_tag(block: str) -> str:
    """Text of the <Workout ...> tag itself, so nested tags can't leak in."""
    m = OPEN_MARKER.search(block)
    start = m.start() if m else 0
    end = block.find(">", start)
    return block[start:] if end == -1 else block[start:end + 1]


# ── Pending workout ───────────────────────────────────────────────────────────

class PendingWorkout:
    """Lines of the block seen so far plus statistics merged on the way."""

    __slots__ = ("lines", "statistics")

    def __init__(self, first_line: str):
        self.lines = [first_line]
        self.statistics = {}

    def add(self, line: str):
        self.lines.append(line)
        if any(tag in line for tag in STATISTICS_TAGS):
            self.statistics.update(_statistics_in(line, last_wins=True))

    def text(self) -> str:
        return "\n".join(self.lines)


def build_workout(block: str, merged: Optional[dict] = None) -> Optional[WorkoutRecord]:
    """
    Turn a complete workout block into a WorkoutRecord.

    Top-level attributes come from the opening tag. Statistics come from
    `merged` (collected line by line) with a sweep of the whole block filling
    anything that was missed. Returns None without an activity type or start.
    """
    tag = _opening_tag(block)
    raw_type = attr(tag, "workoutActivityType")
    start_raw = attr(tag, "startDate")
    if not raw_type or not start_raw:
        return None

    type_name = clean_activity_type(raw_type)
    end_raw = attr(tag, "endDate")

    stats = _statistics_in(block, last_wins=False)
    stats.update(merged or {})
    for field_name, value in _metadata_in(block).items():
        stats.setdefault(field_name, value)

    duration = 0.0
    minutes = to_float(attr(tag, "duration"))
    if minutes is not None:
        duration = minutes * 60
    elif end_raw:
        start, end = parse_date(start_raw), parse_date(end_raw)
        if start is not None and end is not None:
            duration = (end - start).total_seconds()

    calories = stats.get("active_calories")
    if calories is None:
        calories = to_float(attr(tag, "totalEnergyBurned"))

    distance = stats.get("distance")
    if distance is None:
        distance = to_float(attr(tag, "totalDistance"))

    return WorkoutRecord(
        type=type_name,
        category=categorize(type_name),
        date=start_raw,
        end_date=end_raw,
        duration=max(0, _round(duration)),
        active_calories=_round(calories) if calories is not None else 0,
        avg_heart_rate=_round(stats.get("avg_heart_rate", 0)),
        max_heart_rate=_round(stats.get("max_heart_rate", 0)),
        distance=distance if distance is not None else 0.0,
        steps=_round(stats.get("steps", 0)),
        source=attr(tag, "sourceName") or DEFAULT_SOURCE,
    )


# ── State machine ─────────────────────────────────────────────────────────────

class State(Enum):
    IDLE = "idle"
    IN_BLOCK = "in_block"


class WorkoutAssembler:
    """
    Two states. IDLE until a line opens a workout, IN_BLOCK until the
    matching close. Owns at most one PendingWorkout.

    feed() returns (consumed, record): consumed says whether the line belonged
    to a workout block; record is the finished workout when the line closed a
    block that parsed cleanly.
    """

    def __init__(self):
        self.state = State.IDLE
        self.pending: Optional[PendingWorkout] = None
        self.rejected = 0

    def feed(self, line: str) -> tuple:
        if self.state is State.IN_BLOCK:
            self.pending.add(line)
            if CLOSE_MARKER in line:
                return True, self._close()
            return True, None

        m = OPEN_MARKER.search(line)
        if not m:
            return False, None

        self.pending = PendingWorkout(line)
        self.state = State.IN_BLOCK
        # Whole workout on one line, or a childless <Workout .../>
        if CLOSE_MARKER in line or _opening_tag(line[m.start():]).endswith("/>"):
            return True, self._close()
        return True, None

    def _close(self) -> Optional[WorkoutRecord]:
        pending, self.pending = self.pending, None
        self.state = State.IDLE
        record = build_workout(pending.text(), pending.statistics)
        if record is None:
            self.rejected += 1
        return record
