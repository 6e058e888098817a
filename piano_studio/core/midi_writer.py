"""Save recorded MIDI events as .mid files.

Encodes CapturedEvent logs into a format 1 Standard MIDI File: a meta track
holding the time signature and tempo, followed by one track of performance
events. Channel messages are built with mido; chunk framing and delta times
are written here so the output is byte-exact (no running status).
"""

from __future__ import annotations

import io
import logging
import math
import struct
import time
from collections.abc import Iterable, Sequence
from pathlib import Path

import mido

from .constants import (
    CLOCKS_PER_CLICK,
    MAX_BEATS_PER_MEASURE,
    META_END_OF_TRACK,
    META_SET_TEMPO,
    META_TIME_SIGNATURE,
    MIN_BEATS_PER_MEASURE,
    NOTATED_32NDS_PER_BEAT,
    NOTE_OFF_VELOCITY,
    RECORDING_FILENAME_PREFIX,
    SMF_FORMAT,
    SMF_TRACK_COUNT,
    TICKS_PER_BEAT,
)
from .midi_recorder import Aftertouch, CapturedEvent, ChannelPressure, ControlChange, NoteEvent
from .tempo import TempoSignature

log = logging.getLogger(__name__)

END_OF_TRACK = bytes((0x00, 0xFF, META_END_OF_TRACK, 0x00))


class EncodeError(Exception):
    """Base class for export failures."""


class EmptyRecordingError(EncodeError):
    """Raised when exporting a recording with no events."""


class ExportIOError(EncodeError):
    """Raised when the encoded file cannot be written."""


# ── Primitives ────────────────────────────────────────────


def encode_variable_length(value: int) -> bytes:
    """Encode a non-negative int as a MIDI variable-length quantity."""
    if value < 0:
        raise ValueError(f"VLQ value must be non-negative, got {value}")
    out = bytearray([value & 0x7F])
    value >>= 7
    while value:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.reverse()
    return bytes(out)


def decode_variable_length(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a VLQ starting at ``offset``. Returns (value, next_offset)."""
    value = 0
    while True:
        if offset >= len(data):
            raise ValueError("Truncated variable-length quantity")
        byte = data[offset]
        offset += 1
        value = (value << 7) | (byte & 0x7F)
        if not byte & 0x80:
            return value, offset


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def _chunk(tag: bytes, payload: bytes) -> bytes:
    return tag + struct.pack(">I", len(payload)) + payload


def read_chunks(data: bytes) -> list[tuple[bytes, bytes]]:
    """Split SMF bytes into (tag, payload) pairs."""
    chunks: list[tuple[bytes, bytes]] = []
    pos = 0
    while pos < len(data):
        if pos + 8 > len(data):
            raise ValueError(f"Truncated chunk header at byte {pos}")
        tag = data[pos:pos + 4]
        (length,) = struct.unpack(">I", data[pos + 4:pos + 8])
        start = pos + 8
        if start + length > len(data):
            raise ValueError(f"Chunk {tag!r} at byte {pos} declares {length} bytes past end of data")
        chunks.append((tag, data[start:start + length]))
        pos = start + length
    return chunks


# ── Encoding ──────────────────────────────────────────────


def ms_to_ticks(time_ms: float, bpm: int) -> int:
    return math.floor(time_ms * TICKS_PER_BEAT * bpm / 60000)


def _header_chunk() -> bytes:
    return _chunk(b"MThd", struct.pack(">HHH", SMF_FORMAT, SMF_TRACK_COUNT, TICKS_PER_BEAT))


def _meta_track(signature: TempoSignature) -> bytes:
    tempo = signature.microseconds_per_beat
    payload = bytes((
        0x00, 0xFF, META_TIME_SIGNATURE, 0x04,
        _clamp(signature.beats_per_measure, MIN_BEATS_PER_MEASURE, MAX_BEATS_PER_MEASURE),
        signature.beat_unit_exponent,
        CLOCKS_PER_CLICK,
        NOTATED_32NDS_PER_BEAT,
        0x00, 0xFF, META_SET_TEMPO, 0x03,
        (tempo >> 16) & 0xFF,
        (tempo >> 8) & 0xFF,
        tempo & 0xFF,
    )) + END_OF_TRACK
    return _chunk(b"MTrk", payload)


def event_message(evt: CapturedEvent) -> mido.Message:
    """Build the mido channel message written for a captured event."""
    ch = evt.channel & 0x0F
    if isinstance(evt, NoteEvent):
        note = _clamp(evt.note, 0, 127)
        if evt.is_note_on:
            return mido.Message("note_on", channel=ch, note=note, velocity=_clamp(evt.velocity, 1, 127))
        return mido.Message("note_off", channel=ch, note=note, velocity=NOTE_OFF_VELOCITY)
    if isinstance(evt, ControlChange):
        return mido.Message(
            "control_change",
            channel=ch,
            control=_clamp(evt.controller, 0, 127),
            value=_clamp(evt.value, 0, 127),
        )
    if isinstance(evt, Aftertouch):
        return mido.Message(
            "polytouch", channel=ch, note=_clamp(evt.note, 0, 127), value=_clamp(evt.pressure, 0, 127),
        )
    if isinstance(evt, ChannelPressure):
        return mido.Message("aftertouch", channel=ch, value=_clamp(evt.pressure, 0, 127))
    raise TypeError(f"Unsupported event type: {type(evt).__name__}")


def _event_track(events: Iterable[CapturedEvent], bpm: int) -> bytes:
    # sorted() is stable, so simultaneous events keep their arrival order
    ordered = sorted(events, key=lambda e: max(0.0, e.time_ms))
    data = bytearray()
    prev_tick = 0
    for evt in ordered:
        tick = ms_to_ticks(max(0.0, evt.time_ms), bpm)
        delta = max(0, tick - prev_tick)
        prev_tick = tick
        data += encode_variable_length(delta)
        data += bytes(event_message(evt).bytes())
    data += END_OF_TRACK
    return _chunk(b"MTrk", bytes(data))


def encode_midi_file(events: Sequence[CapturedEvent], signature: TempoSignature) -> bytes:
    """Encode a captured log as a format 1 SMF.

    Raises:
        EmptyRecordingError: if ``events`` is empty.
    """
    if not events:
        raise EmptyRecordingError("No events recorded")
    return _header_chunk() + _meta_track(signature) + _event_track(events, signature.bpm)


# ── File sink ─────────────────────────────────────────────


class MidiWriter:
    """Write captured event logs to .mid files."""

    @staticmethod
    def default_filename(now: float | None = None) -> str:
        """``piano-recording-<epoch ms>.mid``."""
        if now is None:
            now = time.time()
        return f"{RECORDING_FILENAME_PREFIX}{int(now * 1000)}.mid"

    @staticmethod
    def save(
        events: Sequence[CapturedEvent],
        file_path: str | Path,
        signature: TempoSignature | None = None,
    ) -> Path:
        """Encode ``events`` and write them to ``file_path``.

        Args:
            events: Snapshot of a RecordingSession log.
            file_path: Output .mid file path; parent directories are created.
            signature: Tempo and time signature (default 4/4 at 120 BPM).

        Raises:
            EmptyRecordingError: nothing was recorded; no file is created.
            ExportIOError: the file could not be written.
        """
        if signature is None:
            signature = TempoSignature()
        data = encode_midi_file(events, signature)

        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ExportIOError(f"Failed to write {path}: {e}") from e

        log.info("Exported: %s (%s)", path.name, signature)
        return path

    @staticmethod
    def describe(data: bytes) -> dict[str, int]:
        """Summarise encoded SMF bytes: track count, division and event count."""
        chunks = read_chunks(data)
        if not chunks or chunks[0][0] != b"MThd":
            raise ValueError("Missing MThd header chunk")
        fmt, ntracks, division = struct.unpack(">HHH", chunks[0][1][:6])
        mid = mido.MidiFile(file=io.BytesIO(data))
        events = sum(1 for track in mid.tracks for msg in track if not msg.is_meta)
        return {"format": fmt, "tracks": ntracks, "division": division, "events": events}
