"""MIDI recording engine — captures live MIDI messages with timestamps.

Pure Python, no I/O. Thread-safe: ``ingest`` is called from the rtmidi
callback thread while ``start``/``stop``/``clear`` come from the host thread,
so every mutation of the log happens under one lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Union

from .constants import (
    CHANNEL_PRESSURE,
    CONTROL_CHANGE,
    NOTE_OFF,
    NOTE_ON,
    POLY_AFTERTOUCH,
    RECORDED_CONTROLLERS,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NoteEvent:
    """Note on/off. A note-on with velocity 0 is stored as a note-off."""

    time_ms: float
    channel: int
    note: int
    velocity: int
    is_note_on: bool


@dataclass(frozen=True, slots=True)
class ControlChange:
    time_ms: float
    channel: int
    controller: int
    value: int


@dataclass(frozen=True, slots=True)
class Aftertouch:
    """Polyphonic (per-key) aftertouch."""

    time_ms: float
    channel: int
    note: int
    pressure: int


@dataclass(frozen=True, slots=True)
class ChannelPressure:
    time_ms: float
    channel: int
    pressure: int


CapturedEvent = Union[NoteEvent, ControlChange, Aftertouch, ChannelPressure]


def parse_message(raw: Sequence[int], time_ms: float) -> CapturedEvent | None:
    """Classify a raw channel message.

    Returns ``None`` for message types that are not recorded, controllers
    outside the recorded set, and truncated messages.
    """
    if not raw:
        return None
    status = raw[0]
    kind = status & 0xF0
    channel = status & 0x0F

    if kind in (NOTE_ON, NOTE_OFF):
        if len(raw) < 3:
            return None
        note, velocity = raw[1], raw[2]
        return NoteEvent(
            time_ms=time_ms,
            channel=channel,
            note=note,
            velocity=velocity,
            is_note_on=kind == NOTE_ON and velocity > 0,
        )
    if kind == CONTROL_CHANGE:
        if len(raw) < 3 or raw[1] not in RECORDED_CONTROLLERS:
            return None
        return ControlChange(time_ms=time_ms, channel=channel, controller=raw[1], value=raw[2])
    if kind == POLY_AFTERTOUCH:
        if len(raw) < 3:
            return None
        return Aftertouch(time_ms=time_ms, channel=channel, note=raw[1], pressure=raw[2])
    if kind == CHANNEL_PRESSURE:
        if len(raw) < 2:
            return None
        return ChannelPressure(time_ms=time_ms, channel=channel, pressure=raw[1])
    return None


class RecordingSession:
    """Records live MIDI messages with precise timing.

    ``clock`` must be monotonic and return seconds; it defaults to
    ``time.perf_counter``.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._events: list[CapturedEvent] = []
        self._recording = False
        self._start_time: float = 0.0

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def start_timestamp(self) -> float:
        return self._start_time

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def note_on_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._events if isinstance(e, NoteEvent) and e.is_note_on)

    @property
    def duration_ms(self) -> float:
        """Milliseconds since start while recording, else the last event time."""
        if self._recording:
            return (self._clock() - self._start_time) * 1000.0
        with self._lock:
            if not self._events:
                return 0.0
            return max(e.time_ms for e in self._events)

    @property
    def events(self) -> tuple[CapturedEvent, ...]:
        """Immutable snapshot of the log, in arrival order."""
        with self._lock:
            return tuple(self._events)

    def start(self, anchor: float | None = None) -> None:
        """Start a new recording, discarding any previous log.

        ``anchor`` is an earlier clock reading to measure from, e.g. the
        moment a metronome started, so recorded times line up with its beat.
        """
        now = self._clock()
        with self._lock:
            self._events.clear()
            self._start_time = now if anchor is None else min(anchor, now)
            self._recording = True
        log.info("Recording started")

    def stop(self) -> tuple[CapturedEvent, ...]:
        """Stop recording and return the captured events."""
        with self._lock:
            self._recording = False
            events = tuple(self._events)
        log.info("Recording stopped: %d events", len(events))
        return events

    def clear(self) -> None:
        """Drop the log. Clearing while armed also disarms."""
        with self._lock:
            self._events.clear()
            self._recording = False

    def ingest(self, raw: Sequence[int], timestamp: float | None = None) -> None:
        """Record one raw MIDI message. Called from the rtmidi callback thread.

        ``timestamp`` is a reading of the session clock; the current reading
        is used when omitted. Never raises.
        """
        if not self._recording:
            return
        if timestamp is None:
            timestamp = self._clock()
        try:
            data = bytes(raw)
        except (TypeError, ValueError):
            log.debug("Dropped malformed MIDI message: %r", raw)
            return
        with self._lock:
            if not self._recording:
                return
            time_ms = (timestamp - self._start_time) * 1000.0
            event = parse_message(data, time_ms)
            if event is None:
                log.debug("Ignored MIDI message: %s", data.hex(" "))
                return
            self._events.append(event)
