import math
from dataclasses import dataclass

from confidence_backend.config import (
    EYE_CONTACT_DEVIATION_GAIN,
    STABILITY_MOVEMENT_THRESHOLD,
    EXPRESSION_BASELINE,
    SMILE_LIFT_THRESHOLD, SMILE_LIFT_GAIN, SMILE_MAX_BONUS,
    FROWN_LIFT_GAIN, FROWN_MAX_PENALTY,
    WIDE_MOUTH_THRESHOLD, WIDE_MOUTH_BONUS,
    BLINK_EAR_THRESHOLD,
    EYE_CONTACT_WEIGHT, STABILITY_WEIGHT, EXPRESSION_WEIGHT,
    CONFIDENCE_LEVELS, LOWEST_CONFIDENCE_LEVEL,
    BLINK_RATE_NORMAL_MIN, BLINK_RATE_NORMAL_MAX,
    LOW_BLINK_RATE_LEVEL, NORMAL_BLINK_RATE_LEVEL, HIGH_BLINK_RATE_LEVEL,
)
from confidence_backend.processing.geometry import (
    horizontal_deviation, vertical_deviation, depth_deviation,
    nose_movement, mouth_geometry, eye_aspect_ratio, has_face,
)


@dataclass(frozen=True)
class BlinkReading:
    is_blink: bool
    eye_aspect_ratio: float


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up, like JavaScript Math.round."""
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> int:
    return round_half_up(max(0.0, min(100.0, value)))


def eye_contact_score(landmarks, gain: float = EYE_CONTACT_DEVIATION_GAIN) -> int:
    """Frontal, centered face = high score. No face = 0."""
    horizontal = horizontal_deviation(landmarks)
    vertical = vertical_deviation(landmarks)
    depth = depth_deviation(landmarks)
    if horizontal is None or vertical is None or depth is None:
        return 0
    avg_deviation = (horizontal + vertical + depth) / 3
    return _clamp_score((1 - avg_deviation * gain) * 100)


def stability_score(current, previous, threshold: float = STABILITY_MOVEMENT_THRESHOLD) -> int:
    """Nose-tip movement between frames. Stable (100) when there is nothing to compare against."""
    if not has_face(previous):
        return 100
    movement = nose_movement(current, previous)
    if movement is None:
        return 100
    return _clamp_score((1 - movement / threshold) * 100)


def expression_score(landmarks) -> int:
    """Smile raises the score above the neutral 50, a frown lowers it."""
    mouth = mouth_geometry(landmarks)
    if mouth is None:
        return EXPRESSION_BASELINE

    score = float(EXPRESSION_BASELINE)
    if mouth.corner_lift > SMILE_LIFT_THRESHOLD:
        score += min(SMILE_MAX_BONUS, mouth.corner_lift * SMILE_LIFT_GAIN)
    elif mouth.corner_lift < -SMILE_LIFT_THRESHOLD:
        score -= min(FROWN_MAX_PENALTY, abs(mouth.corner_lift) * FROWN_LIFT_GAIN)

    if mouth.width > WIDE_MOUTH_THRESHOLD:
        score += WIDE_MOUTH_BONUS

    return _clamp_score(score)


def detect_blink(landmarks, threshold: float = BLINK_EAR_THRESHOLD) -> BlinkReading:
    ear = eye_aspect_ratio(landmarks)
    if ear is None:
        return BlinkReading(is_blink=False, eye_aspect_ratio=0.0)
    return BlinkReading(is_blink=ear < threshold, eye_aspect_ratio=ear)


def confidence_score(eye_contact: float, stability: float, expression: float) -> int:
    """Weighted composite: gaze 40%, composure 35%, affect 25%."""
    return round_half_up(
        eye_contact * EYE_CONTACT_WEIGHT
        + stability * STABILITY_WEIGHT
        + expression * EXPRESSION_WEIGHT
    )


def confidence_level(score: float) -> str:
    for lower_bound, label in CONFIDENCE_LEVELS:
        if score >= lower_bound:
            return label
    return LOWEST_CONFIDENCE_LEVEL


def blink_rate_level(rate: float) -> str:
    """Blinks per minute: below the normal band reads as staring, above it as nervous."""
    if rate < BLINK_RATE_NORMAL_MIN:
        return LOW_BLINK_RATE_LEVEL
    if rate <= BLINK_RATE_NORMAL_MAX:
        return NORMAL_BLINK_RATE_LEVEL
    return HIGH_BLINK_RATE_LEVEL
