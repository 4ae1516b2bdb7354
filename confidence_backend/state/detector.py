import logging
import threading
from enum import Enum
from typing import Any, Callable

import numpy as np

from confidence_backend.state.session import ConfidenceSession
from confidence_backend.processing.pipeline import process_frame, process_landmarks
from confidence_backend.schemas.messages import FrameMetrics, SessionMetrics

logger = logging.getLogger("uvicorn.error")

Listener = Callable[[str, Any], None]


class DetectorState(str, Enum):
    IDLE = "IDLE"
    REQUESTING = "REQUESTING"
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class ConfidenceDetector:
    """Lifecycle around one ConfidenceSession.

    IDLE -> REQUESTING -> ACTIVE -> STOPPED, or ERROR when the face mesh cannot be
    created. Frames are only scored while ACTIVE, one at a time: a frame that arrives
    while another is being scored is dropped. A frame that finishes after ``stop()``
    or ``reset()`` is discarded.

    Listeners receive ``("state", DetectorState)`` on every transition and
    ``("metrics", frame_response)`` for every scored frame.
    """

    def __init__(self, landmarker_factory: Callable[[], Any] | None = None,
                 session: ConfidenceSession | None = None, preload: bool = False):
        self._landmarker_factory = landmarker_factory
        self._preload = preload
        self.session = session or ConfidenceSession()
        self.state = DetectorState.IDLE
        self.error: Exception | None = None
        self._landmarker = None
        self._listeners: list[Listener] = []
        self._busy = threading.Lock()
        self._generation = 0

    # --- Observers ---

    def subscribe(self, listener: Listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str, payload):
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception(f"Detector listener failed on {event!r}")

    def _set_state(self, state: DetectorState):
        self.state = state
        self._emit("state", state)

    # --- Lifecycle ---

    def start(self) -> DetectorState:
        if self.state in (DetectorState.REQUESTING, DetectorState.ACTIVE):
            return self.state

        self.error = None
        self._set_state(DetectorState.REQUESTING)
        if self._preload and not self._ensure_landmarker():
            return self.state

        self._generation += 1
        self.session.reset()
        self._set_state(DetectorState.ACTIVE)
        return self.state

    def stop(self, reset: bool = False) -> DetectorState:
        if self.state in (DetectorState.IDLE, DetectorState.STOPPED):
            return self.state

        self._generation += 1
        self._set_state(DetectorState.STOPPED)
        with self._busy:
            if self._landmarker is not None:
                self._landmarker.close()
                self._landmarker = None
            if reset:
                self.session.reset()
        return self.state

    def reset(self):
        """Clear the session, waiting for a frame in flight. That frame's result is discarded."""
        self._generation += 1
        with self._busy:
            self.session.reset()

    def session_metrics(self) -> SessionMetrics:
        with self._busy:
            return self.session.session_metrics()

    def smoothed_metrics(self) -> FrameMetrics:
        with self._busy:
            return self.session.smoothed_metrics()

    def _ensure_landmarker(self) -> bool:
        if self._landmarker is not None:
            return True
        if self._landmarker_factory is None:
            return self._fail(RuntimeError("No landmarker factory configured; only landmark input is supported"))
        try:
            self._landmarker = self._landmarker_factory()
        except Exception as e:
            return self._fail(e)
        return True

    def _fail(self, error: Exception) -> bool:
        logger.error(f"Could not create face mesh: {type(error).__name__}: {error}")
        self.error = error
        self._set_state(DetectorState.ERROR)
        return False

    # --- Frames ---

    def _run(self, score: Callable[[], dict]) -> dict | None:
        if self.state != DetectorState.ACTIVE:
            return None
        if not self._busy.acquire(blocking=False):
            return None
        generation = self._generation
        try:
            response = score()
            current = generation == self._generation
        finally:
            self._busy.release()

        if not current or self.state != DetectorState.ACTIVE:
            return None
        self._emit("metrics", response)
        return response

    def submit_landmarks(self, landmarks) -> dict | None:
        """Score landmarks from an external face mesh. None when dropped or not active."""
        return self._run(lambda: process_landmarks(landmarks, self.session))

    def submit_frame(self, frame_bgr: np.ndarray) -> dict | None:
        """Run the face mesh on a BGR frame and score it. None when dropped or not active."""
        if self.state != DetectorState.ACTIVE or not self._ensure_landmarker():
            return None
        landmarker = self._landmarker
        return self._run(lambda: process_frame(frame_bgr, self.session, landmarker))
