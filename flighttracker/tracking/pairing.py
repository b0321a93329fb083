"""Per-aircraft even/odd CPR frame pairing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from flighttracker.domain.messages import Parity
from flighttracker.tracking.cpr import DEFAULT_PAIRING_WINDOW, PositionFrame


class PairingState(str, Enum):
    """Where an aircraft's CPR pairing stands.

    ``EVEN_PENDING`` and ``ODD_PENDING`` name the parity currently held while
    waiting for a partner of the other parity.
    """

    NO_FRAMES = "no_frames"
    EVEN_PENDING = "even_pending"
    ODD_PENDING = "odd_pending"
    PAIRED = "paired"


@dataclass
class CprPairing:
    """Holds the most recent frame of each parity and tracks pairing state.

    A held frame expires once it is more than ``window`` seconds older than
    the newest frame, so a pair is never formed from samples further apart
    than the window. Switching between airborne and surface frames drops the
    other slot.
    """

    window: float = DEFAULT_PAIRING_WINDOW
    even: PositionFrame | None = None
    odd: PositionFrame | None = None
    state: PairingState = PairingState.NO_FRAMES
    expired_frames: int = 0

    def push(self, frame: PositionFrame) -> bool:
        """Store ``frame`` in its parity slot.

        Returns ``False`` without storing when a newer frame of the same
        parity is already held, or when the held frame of the other parity is
        newer and outside the window (the incoming frame arrived too late).
        """

        current = self._slot(frame.parity)
        if current is not None and current.timestamp > frame.timestamp:
            return False

        opposite = self._slot(frame.parity.opposite)
        if (
            opposite is not None
            and opposite.timestamp > frame.timestamp
            and not self._within_window(opposite, frame)
        ):
            return False

        self._set_slot(frame.parity, frame)

        if opposite is not None and (
            opposite.surface != frame.surface or not self._within_window(opposite, frame)
        ):
            self._set_slot(frame.parity.opposite, None)
            self.expired_frames += 1

        self._update_state()
        return True

    def expire(self, now: datetime) -> PairingState:
        """Drop held frames older than the window relative to ``now``."""

        for parity in (Parity.EVEN, Parity.ODD):
            held = self._slot(parity)
            if held is not None and (now - held.timestamp).total_seconds() > self.window:
                self._set_slot(parity, None)
                self.expired_frames += 1
        self._update_state()
        return self.state

    def pair(self) -> tuple[PositionFrame, PositionFrame] | None:
        """Return ``(even, odd)`` when both slots are filled."""

        if self.state is not PairingState.PAIRED:
            return None
        assert self.even is not None and self.odd is not None
        return self.even, self.odd

    def reset(self) -> None:
        self.even = None
        self.odd = None
        self._update_state()

    def _within_window(self, first: PositionFrame, second: PositionFrame) -> bool:
        return abs((first.timestamp - second.timestamp).total_seconds()) <= self.window

    def _slot(self, parity: Parity) -> PositionFrame | None:
        return self.even if parity is Parity.EVEN else self.odd

    def _set_slot(self, parity: Parity, frame: PositionFrame | None) -> None:
        if parity is Parity.EVEN:
            self.even = frame
        else:
            self.odd = frame

    def _update_state(self) -> None:
        if self.even is not None and self.odd is not None:
            self.state = PairingState.PAIRED
        elif self.even is not None:
            self.state = PairingState.EVEN_PENDING
        elif self.odd is not None:
            self.state = PairingState.ODD_PENDING
        else:
            self.state = PairingState.NO_FRAMES


__all__ = ["CprPairing", "PairingState"]
