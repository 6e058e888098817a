"""Tempo and time signature state shared by the recorder and the exporter."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from .constants import (
    DEFAULT_BEAT_UNIT,
    DEFAULT_BEATS_PER_MEASURE,
    DEFAULT_BPM,
    MAX_BEAT_UNIT,
    MAX_BEATS_PER_MEASURE,
    MAX_BPM,
    MIN_BEAT_UNIT,
    MIN_BEATS_PER_MEASURE,
    MIN_BPM,
    TAP_HISTORY,
    TAP_MAX_INTERVAL_MS,
    TAP_MIN_INTERVAL_MS,
    TAP_RESET_MS,
    VALID_BEAT_UNITS,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TempoSignature:
    """Read-only tempo snapshot taken when an export starts."""

    bpm: int = DEFAULT_BPM
    beats_per_measure: int = DEFAULT_BEATS_PER_MEASURE
    beat_unit: int = DEFAULT_BEAT_UNIT

    @property
    def normalized_beat_unit(self) -> int:
        return self.beat_unit if self.beat_unit in VALID_BEAT_UNITS else DEFAULT_BEAT_UNIT

    @property
    def beat_unit_exponent(self) -> int:
        """Denominator as a power of two, as stored in the time signature meta event."""
        return self.normalized_beat_unit.bit_length() - 1

    @property
    def microseconds_per_beat(self) -> int:
        return 60_000_000 // self.bpm

    def __str__(self) -> str:
        return f"{self.beats_per_measure}/{self.normalized_beat_unit}, {self.bpm} BPM"


def _parse_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return parsed or default


class TempoState:
    """Mutable BPM and time signature, with tap tempo.

    Values are clamped on the way in, so ``snapshot()`` is always encodable.
    """

    def __init__(
        self,
        bpm: int = DEFAULT_BPM,
        beats_per_measure: int = DEFAULT_BEATS_PER_MEASURE,
        beat_unit: int = DEFAULT_BEAT_UNIT,
        clock=time.perf_counter,
    ) -> None:
        self._clock = clock
        self._bpm = DEFAULT_BPM
        self._beats_per_measure = DEFAULT_BEATS_PER_MEASURE
        self._beat_unit = DEFAULT_BEAT_UNIT
        self._taps: list[float] = []
        self.set_bpm(bpm)
        self.set_time_signature(beats_per_measure, beat_unit)

    @property
    def bpm(self) -> int:
        return self._bpm

    @property
    def beats_per_measure(self) -> int:
        return self._beats_per_measure

    @property
    def beat_unit(self) -> int:
        return self._beat_unit

    def snapshot(self) -> TempoSignature:
        return TempoSignature(self._bpm, self._beats_per_measure, self._beat_unit)

    def set_bpm(self, value: Any) -> bool:
        """Set BPM from user input. Returns True if the tempo changed."""
        bpm = max(MIN_BPM, min(MAX_BPM, _parse_int(value, DEFAULT_BPM)))
        if bpm == self._bpm:
            return False
        self._bpm = bpm
        log.debug("Tempo set to %d BPM", bpm)
        return True

    def set_time_signature(self, beats: Any, unit: Any) -> None:
        """Both fields are clamped to 1-32; a unit that is not a power of two becomes 4."""
        self._beats_per_measure = max(
            MIN_BEATS_PER_MEASURE,
            min(MAX_BEATS_PER_MEASURE, _parse_int(beats, DEFAULT_BEATS_PER_MEASURE)),
        )
        beat_unit = max(
            MIN_BEAT_UNIT,
            min(MAX_BEAT_UNIT, _parse_int(unit, DEFAULT_BEAT_UNIT)),
        )
        self._beat_unit = beat_unit if beat_unit in VALID_BEAT_UNITS else DEFAULT_BEAT_UNIT

    def tap(self, now: float | None = None) -> int | None:
        """Register a tap (clock seconds). Returns the new BPM once it can be derived."""
        now_ms = (self._clock() if now is None else now) * 1000.0
        if self._taps and now_ms - self._taps[-1] > TAP_RESET_MS:
            self._taps.clear()
        self._taps.append(now_ms)
        if len(self._taps) > TAP_HISTORY:
            del self._taps[0]
        if len(self._taps) < 2:
            return None

        intervals = [b - a for a, b in zip(self._taps, self._taps[1:])]
        valid = [i for i in intervals if TAP_MIN_INTERVAL_MS <= i <= TAP_MAX_INTERVAL_MS]
        if not valid:
            return None
        bpm = round(60000 / (sum(valid) / len(valid)))
        if not MIN_BPM <= bpm <= MAX_BPM:
            return None
        self.set_bpm(bpm)
        return self._bpm

    def measure_position(self, elapsed_ms: float) -> tuple[int, int]:
        """1-based (measure, beat) reached after ``elapsed_ms``."""
        beat_ms = 60000 / self._bpm
        beat_index = int(max(0.0, elapsed_ms) // beat_ms)
        measure, beat = divmod(beat_index, self._beats_per_measure)
        return measure + 1, beat + 1
