import time
import logging
import cv2
import numpy as np

from confidence_backend.state.session import ConfidenceSession
from confidence_backend.processing.geometry import has_face
from confidence_backend.processing.lighting import detect_low_light
from confidence_backend.processing.scoring import (
    eye_contact_score, stability_score, expression_score,
    detect_blink, confidence_score, confidence_level, blink_rate_level,
)
from confidence_backend.schemas.messages import FrameMetrics, FrameResponse, LightingResult

logger = logging.getLogger("uvicorn.error")


def analyze_landmarks(landmarks, session: ConfidenceSession, now: float | None = None) -> FrameMetrics | None:
    """Score one landmark set and append it to the session window.

    Returns the raw (unsmoothed) frame metrics, or None when no face was supplied,
    in which case the session is left untouched.
    """
    if not has_face(landmarks):
        return None
    if now is None:
        now = session.clock()

    eye_contact = eye_contact_score(landmarks)
    stability = stability_score(landmarks, session.previous_landmarks)
    expression = expression_score(landmarks)

    blink = detect_blink(landmarks)
    session.observe_blink(blink.is_blink, now)

    metrics = FrameMetrics(
        eye_contact_score=eye_contact,
        stability_score=stability,
        expression_score=expression,
        confidence_score=confidence_score(eye_contact, stability, expression),
        blink_count=session.blink_count,
        blink_rate=session.blink_rate(now),
    )
    session.append_frame(metrics, landmarks)
    return metrics


def build_frame_response(session: ConfidenceSession, face_detected: bool,
                         lighting: LightingResult | None = None) -> dict:
    smoothed = session.smoothed_metrics()
    return FrameResponse(
        face_detected=face_detected,
        metrics=smoothed,
        confidence_level=confidence_level(smoothed.confidence_score),
        blink_rate_level=blink_rate_level(smoothed.blink_rate),
        lighting=lighting,
    ).model_dump()


def process_landmarks(landmarks, session: ConfidenceSession, now: float | None = None) -> dict:
    """Landmarks already produced by a browser-side face mesh."""
    metrics = analyze_landmarks(landmarks, session, now)
    return build_frame_response(session, face_detected=metrics is not None)


def process_frame(frame_bgr: np.ndarray, session: ConfidenceSession, landmarker,
                  now: float | None = None) -> dict:
    """Process a single frame through the full pipeline. Returns a JSON-serializable dict."""
    t0 = time.perf_counter()
    frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    landmarks = landmarker.detect_landmarks(frame_rgb)
    t1 = time.perf_counter()

    lighting = detect_low_light(frame_bgr)
    metrics = analyze_landmarks(landmarks, session, now)
    logger.debug(
        f"[Pipeline] face_mesh: {(t1-t0)*1000:.0f}ms, face={metrics is not None}, "
        f"brightness={lighting.brightness}"
    )

    return build_frame_response(session, face_detected=metrics is not None, lighting=lighting)
