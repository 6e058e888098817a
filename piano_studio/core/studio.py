"""Recorder facade: wires the MIDI listener, recording session and exporter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .config import ConfigManager, get_config
from .midi_listener import MidiListener
from .midi_recorder import RecordingSession
from .midi_writer import EmptyRecordingError, EncodeError, MidiWriter
from .tempo import TempoState

log = logging.getLogger(__name__)


class Studio:
    """Owns one recording session plus the tempo it is exported with.

    Tempo and port changes are written back to the config so they survive
    restarts.
    """

    def __init__(
        self,
        config: ConfigManager | None = None,
        session: RecordingSession | None = None,
        listener: MidiListener | None = None,
    ) -> None:
        self.config = config if config is not None else get_config()
        self.session = session if session is not None else RecordingSession()
        self.listener = listener if listener is not None else MidiListener()
        self.tempo = TempoState(
            bpm=self.config.get("tempo.bpm"),
            beats_per_measure=self.config.get("tempo.beats_per_measure"),
            beat_unit=self.config.get("tempo.beat_unit"),
        )

    # ── Input ───────────────────────────────────────────

    def connect(self, port_name: str) -> None:
        self.listener.open(port_name, self.session.ingest)
        self.config.set("midi.last_port", port_name)

    def auto_connect(self) -> bool:
        """Reopen the last used port if it is still available."""
        port = self.config.get("midi.last_port", "")
        if not port or not self.config.get("midi.auto_connect", True):
            return False
        if port not in MidiListener.list_ports():
            log.info("Last MIDI port %s not available", port)
            return False
        try:
            self.connect(port)
        except (OSError, RuntimeError):
            log.warning("Failed to reopen MIDI port %s", port, exc_info=True)
            return False
        return True

    def disconnect(self) -> None:
        self.listener.close()

    # ── Recording ───────────────────────────────────────

    @property
    def is_recording(self) -> bool:
        return self.session.is_recording

    @property
    def note_count(self) -> int:
        return self.session.note_on_count

    @property
    def position(self) -> tuple[int, int]:
        """1-based (measure, beat) of the recording, for a bar counter."""
        return self.tempo.measure_position(self.session.duration_ms)

    def toggle_recording(self) -> bool:
        """Start when idle, stop when armed. Returns the new recording state."""
        if self.session.is_recording:
            self.session.stop()
        else:
            self.session.start()
        return self.session.is_recording

    def clear(self) -> None:
        self.session.clear()

    # ── Tempo ───────────────────────────────────────────

    def set_bpm(self, value: Any) -> int:
        if self.tempo.set_bpm(value):
            self._save_tempo()
        return self.tempo.bpm

    def set_time_signature(self, beats: Any, unit: Any) -> None:
        self.tempo.set_time_signature(beats, unit)
        self._save_tempo()

    def tap(self, now: float | None = None) -> int | None:
        bpm = self.tempo.tap(now)
        if bpm is not None:
            self._save_tempo()
        return bpm

    def _save_tempo(self) -> None:
        self.config.update({
            "tempo.bpm": self.tempo.bpm,
            "tempo.beats_per_measure": self.tempo.beats_per_measure,
            "tempo.beat_unit": self.tempo.beat_unit,
        })

    # ── Export ──────────────────────────────────────────

    def export(self, directory: str | Path | None = None) -> Path:
        """Stop recording and save the log as a .mid file.

        An empty log raises before anything else happens, leaving the
        session armed. The log is kept after export, so a failed write can be retried.

        Raises:
            EmptyRecordingError: nothing was recorded.
            ExportIOError: the file could not be written.
        """
        if directory is None:
            directory = self.config.get("recording.output_dir", "") or "."
        if not self.session.events:
            log.error("MIDI export failed: no events recorded")
            raise EmptyRecordingError("No events recorded")
        events = self.session.stop()
        signature = self.tempo.snapshot()
        path = Path(directory) / MidiWriter.default_filename()
        try:
            return MidiWriter.save(events, path, signature)
        except EncodeError as e:
            log.error("MIDI export failed: %s", e)
            raise
