"""
Cooperative pause / resume / stop signalling for a generation session.

The batch loops check the control between work units and between attempts.
Pausing never interrupts an in-flight model call; stopping ends the loop
at the next check and leaves already-persisted rows in place.

A control may be driven from another thread (e.g. a keyboard listener)
while the session runs; both flags are ``threading.Event`` objects so the
session blocks instead of spinning while paused.
"""

from __future__ import annotations

import threading

from .config import PAUSE_POLL_SECONDS


class GenerationControl:
    """Pause and stop flags shared between a session and its operator."""

    def __init__(self, poll_seconds: float = PAUSE_POLL_SECONDS):
        self.poll_seconds = poll_seconds
        # Set while running; cleared while paused.
        self._running = threading.Event()
        self._running.set()
        self._stopped = threading.Event()

    @property
    def is_paused(self) -> bool:
        return not self._running.is_set()

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def pause(self) -> None:
        if not self.is_stopped:
            self._running.clear()
            print("Generation paused")

    def resume(self) -> None:
        self._running.set()
        print("Generation resumed")

    def toggle_pause(self) -> bool:
        """Flip the pause flag and return the new paused state."""
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused

    def stop(self) -> None:
        """Request the session to end; also releases a paused session."""
        self._stopped.set()
        self._running.set()
        print("Generation stopped")

    def wait_if_paused(self) -> bool:
        """
        Block while paused.

        The stop flag is re-checked every ``poll_seconds``, so a stop request
        releases the wait promptly.

        Returns:
            ``True`` if the session may continue, ``False`` if stopped.
        """
        while not self._stopped.is_set():
            if self._running.wait(timeout=self.poll_seconds):
                return not self._stopped.is_set()
        return False

    def sleep(self, seconds: float) -> bool:
        """
        Pacing wait that a stop request cuts short.

        Returns:
            ``True`` if the full wait elapsed, ``False`` if stopped.
        """
        if seconds <= 0:
            return not self._stopped.is_set()
        return not self._stopped.wait(timeout=seconds)
