"""MIDI device enumeration and callback-based message capture using mido/rtmidi."""

from __future__ import annotations

import logging
from collections.abc import Callable

import mido

log = logging.getLogger(__name__)

# Channel messages worth forwarding; clock, sysex and realtime traffic is dropped
_ACCEPTED_TYPES = {"note_on", "note_off", "control_change", "polytouch", "aftertouch"}


class MidiListener:
    """Enumerates MIDI input ports and delivers raw channel messages via callback.

    The callback runs on the rtmidi C++ thread for minimum latency.
    """

    def __init__(self) -> None:
        self._port: mido.ports.BaseInput | None = None
        self._port_name: str | None = None
        self._callback: Callable[[bytes], None] | None = None

    @staticmethod
    def list_ports() -> list[str]:
        """Return available MIDI input port names."""
        return mido.get_input_names()  # type: ignore[no-any-return]

    @property
    def connected(self) -> bool:
        return self._port is not None and not getattr(self._port, "closed", True)

    @property
    def port_name(self) -> str | None:
        return self._port_name

    def open(self, port_name: str, callback: Callable[[bytes], None]) -> None:
        """Open a MIDI port and register a callback.

        Args:
            port_name: The MIDI input port name to open.
            callback: Called with the raw message bytes on the rtmidi thread.
        """
        self.close()
        self._callback = callback
        self._port_name = port_name
        try:
            self._port = mido.open_input(port_name, callback=self._on_message)
            log.info("Opened MIDI port: %s", port_name)
        except (OSError, RuntimeError):
            self._port = None
            self._port_name = None
            raise

    def close(self) -> None:
        """Close the current MIDI port if open."""
        if self._port is not None:
            try:
                self._port.close()
            except (OSError, RuntimeError):
                log.warning("Error closing MIDI port %s", self._port_name, exc_info=True)
            self._port = None
            self._port_name = None
            log.info("MIDI port closed")

    def _on_message(self, msg: mido.Message) -> None:
        """Internal callback from rtmidi thread. Filters and dispatches."""
        if self._callback is None or msg.type not in _ACCEPTED_TYPES:
            return
        try:
            self._callback(bytes(msg.bytes()))
        except (AttributeError, IndexError, TypeError, ValueError):
            log.exception("Error in MIDI callback")
