import cv2
import numpy as np

from confidence_backend.config import LOW_LIGHT_THRESHOLD
from confidence_backend.processing.scoring import round_half_up
from confidence_backend.schemas.messages import LightingResult


def detect_low_light(frame_bgr: np.ndarray | None, threshold: float = LOW_LIGHT_THRESHOLD) -> LightingResult:
    """Mean perceived brightness (0.299R + 0.587G + 0.114B) as a percentage of full scale."""
    if frame_bgr is None or frame_bgr.size == 0:
        return LightingResult(is_low_light=False, brightness=0)

    if frame_bgr.ndim == 2:
        gray = frame_bgr.astype(np.float64)
    else:
        b, g, r = cv2.split(frame_bgr[:, :, :3].astype(np.float64))
        gray = 0.299 * r + 0.587 * g + 0.114 * b

    brightness = float(gray.mean()) / 255 * 100
    return LightingResult(is_low_light=brightness < threshold, brightness=round_half_up(brightness))
