"""
Vitals Core — Record Models
Typed records produced by the export scanner.
ZERO network imports. Stdlib only.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DEFAULT_SOURCE = "Apple Health"

WORKOUT_CATEGORIES = (
    "walking",
    "running",
    "cycling",
    "swimming",
    "strength",
    "hiit",
    "yoga",
    "elliptical",
    "other",
)


@dataclass(frozen=True)
class MeasurementRecord:
    """One accepted quantity sample (weight, steps, energy, ...)."""
    value: float
    date: str
    source: str

    def to_dict(self) -> dict:
        return {"value": self.value, "date": self.date, "source": self.source}


@dataclass(frozen=True)
class SleepRecord:
    """One sleep-analysis interval. duration is in hours."""
    date: str
    duration: float
    is_asleep: bool

    def to_dict(self) -> dict:
        return {"date": self.date, "duration": self.duration, "isAsleep": self.is_asleep}


@dataclass(frozen=True)
class WorkoutRecord:
    """A completed workout session. duration is in seconds."""
    type: str
    category: str
    date: str
    end_date: Optional[str] = None
    duration: int = 0
    active_calories: int = 0
    avg_heart_rate: int = 0
    max_heart_rate: int = 0
    distance: float = 0.0
    steps: int = 0
    source: str = DEFAULT_SOURCE

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "category": self.category,
            "date": self.date,
            "endDate": self.end_date,
            "duration": self.duration,
            "activeCalories": self.active_calories,
            "avgHeartRate": self.avg_heart_rate,
            "maxHeartRate": self.max_heart_rate,
            "distance": self.distance,
            "steps": self.steps,
            "source": self.source,
        }


@dataclass(frozen=True)
class ScanStats:
    lines_processed: int
    records_found: int
    start_time: datetime
    end_time: datetime
    duration_seconds: float

    def to_dict(self) -> dict:
        return {
            "linesProcessed": self.lines_processed,
            "recordsFound": self.records_found,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "duration": self.duration_seconds,
        }


@dataclass(frozen=True)
class ScanResult:
    """
    Everything one scan extracted, in input order per kind.
    Built once by the scanner and never mutated afterwards.
    """
    stats: ScanStats
    weight: tuple = ()
    body_fat: tuple = ()
    lean_body_mass: tuple = ()
    waist_circumference: tuple = ()
    sleep: tuple = ()
    resting_heart_rate: tuple = ()
    steps: tuple = ()
    active_energy: tuple = ()
    basal_energy: tuple = ()
    dietary_energy: tuple = ()
    workouts: tuple = ()

    def to_dict(self) -> dict:
        """Render with the camelCase keys the dashboard and data store expect."""
        def rows(records):
            return [r.to_dict() for r in records]

        return {
            "weight": rows(self.weight),
            "bodyFat": rows(self.body_fat),
            "leanBodyMass": rows(self.lean_body_mass),
            "waistCircumference": rows(self.waist_circumference),
            "sleepAnalysis": rows(self.sleep),
            "restingHeartRate": rows(self.resting_heart_rate),
            "steps": rows(self.steps),
            "activeEnergy": rows(self.active_energy),
            "basalEnergy": rows(self.basal_energy),
            "dietaryEnergy": rows(self.dietary_energy),
            "workouts": rows(self.workouts),
            "stats": self.stats.to_dict(),
        }
