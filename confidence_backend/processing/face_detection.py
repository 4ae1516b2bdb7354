import numpy as np
import mediapipe as mp

from confidence_backend.config import (
    LANDMARKER_PATH, MIN_FACE_DETECTION_CONFIDENCE, MIN_FACE_PRESENCE_CONFIDENCE,
)


def create_landmarker():
    """Create a new MediaPipe FaceLandmarker in IMAGE mode (thread-safe, per-session)."""
    BaseOptions = mp.tasks.BaseOptions
    FaceLandmarker = mp.tasks.vision.FaceLandmarker
    FaceLandmarkerOptions = mp.tasks.vision.FaceLandmarkerOptions
    VisionRunningMode = mp.tasks.vision.RunningMode

    options = FaceLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=str(LANDMARKER_PATH)),
        running_mode=VisionRunningMode.IMAGE,
        num_faces=1,
        min_face_detection_confidence=MIN_FACE_DETECTION_CONFIDENCE,
        min_face_presence_confidence=MIN_FACE_PRESENCE_CONFIDENCE,
    )
    return FaceLandmarker.create_from_options(options)


class FaceMeshLandmarker:
    """Single-face MediaPipe mesh. ``detect_landmarks`` returns the 478-point list or None."""

    def __init__(self, landmarker=None):
        self._landmarker = landmarker or create_landmarker()

    def detect_landmarks(self, frame_rgb: np.ndarray):
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._landmarker.detect(mp_image)

        if not result.face_landmarks:
            return None
        return result.face_landmarks[0]

    def close(self):
        self._landmarker.close()
