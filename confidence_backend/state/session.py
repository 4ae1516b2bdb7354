import math
import time
from collections import deque
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable

from confidence_backend.config import METRICS_WINDOW_SIZE, BLINK_RATE_WINDOW_SECONDS
from confidence_backend.processing.scoring import round_half_up
from confidence_backend.schemas.messages import FrameMetrics, SessionMetrics


class EyeState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


DEFAULT_METRICS = FrameMetrics()


@dataclass
class ConfidenceSession:
    """Rolling confidence metrics for one detection run.

    Holds the last ``window_size`` frame metrics, the blink event timestamps,
    and the previous frame's landmarks and eye state. Timestamps are seconds
    from ``clock``.
    """

    clock: Callable[[], float] = time.time
    window_size: int = field(default_factory=lambda: METRICS_WINDOW_SIZE)
    blink_window: float = field(default_factory=lambda: BLINK_RATE_WINDOW_SECONDS)

    metrics_history: deque = field(init=False)
    blink_history: deque = field(init=False, default_factory=deque)
    previous_landmarks: Any = field(init=False, default=None)
    eye_state: EyeState = field(init=False, default=EyeState.OPEN)
    start_time: float = field(init=False)

    def __post_init__(self):
        if self.window_size < 1:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        self.metrics_history = deque(maxlen=self.window_size)
        self.start_time = self.clock()

    def _now(self, now: float | None) -> float:
        return self.clock() if now is None else now

    def observe_blink(self, is_blink: bool, now: float | None = None) -> bool:
        """Advance the eye state machine. Returns True when a blink event was registered.

        Only OPEN -> CLOSED emits, so a closure spanning several frames counts once.
        """
        if is_blink and self.eye_state == EyeState.OPEN:
            self.eye_state = EyeState.CLOSED
            self.blink_history.append(self._now(now))
            return True
        if not is_blink and self.eye_state == EyeState.CLOSED:
            self.eye_state = EyeState.OPEN
        return False

    @property
    def blink_count(self) -> int:
        return len(self.blink_history)

    def blink_rate(self, now: float | None = None) -> int:
        """Blinks in the trailing window."""
        now = self._now(now)
        return sum(1 for t in self.blink_history if now - t < self.blink_window)

    def append_frame(self, metrics: FrameMetrics, landmarks=None):
        self.metrics_history.append(metrics)
        self.previous_landmarks = landmarks

    def smoothed_metrics(self) -> FrameMetrics:
        # Snapshot first: a worker thread may append while this runs
        history = tuple(self.metrics_history)
        if not history:
            return DEFAULT_METRICS

        count = len(history)
        latest = history[-1]
        # Blink fields are cumulative counters, taken from the latest frame
        return FrameMetrics(
            eye_contact_score=round_half_up(sum(m.eye_contact_score for m in history) / count),
            stability_score=round_half_up(sum(m.stability_score for m in history) / count),
            expression_score=round_half_up(sum(m.expression_score for m in history) / count),
            confidence_score=round_half_up(sum(m.confidence_score for m in history) / count),
            blink_count=latest.blink_count,
            blink_rate=latest.blink_rate,
        )

    def duration(self, now: float | None = None) -> int:
        return max(0, math.floor(self._now(now) - self.start_time))

    def session_metrics(self, now: float | None = None) -> SessionMetrics:
        return SessionMetrics(
            **self.smoothed_metrics().model_dump(),
            duration=self.duration(now),
        )

    def reset(self, now: float | None = None):
        self.metrics_history.clear()
        self.blink_history.clear()
        self.previous_landmarks = None
        self.eye_state = EyeState.OPEN
        self.start_time = self._now(now)
