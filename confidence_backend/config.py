import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

BASE_DIR = Path(__file__).resolve().parent

# Face mesh model
LANDMARKER_PATH = BASE_DIR / os.getenv("LANDMARKER_PATH", "weights/face_landmarker.task")
MIN_FACE_DETECTION_CONFIDENCE = float(os.getenv("MIN_FACE_DETECTION_CONFIDENCE", "0.5"))
MIN_FACE_PRESENCE_CONFIDENCE = float(os.getenv("MIN_FACE_PRESENCE_CONFIDENCE", "0.5"))

# MediaPipe face mesh landmark indices
NOSE_TIP = 1
LEFT_EYE_OUTER = 33
RIGHT_EYE_OUTER = 263
FACE_CENTER = 168
UPPER_LIP = 13
LOWER_LIP = 14
MOUTH_LEFT = 78
MOUTH_RIGHT = 308
LEFT_EYE_TOP = 159
LEFT_EYE_BOTTOM = 145
RIGHT_EYE_TOP = 386
RIGHT_EYE_BOTTOM = 374

# Eye contact
EYE_CONTACT_DEVIATION_GAIN = float(os.getenv("EYE_CONTACT_DEVIATION_GAIN", "5.0"))

# Head stability
STABILITY_MOVEMENT_THRESHOLD = float(os.getenv("STABILITY_MOVEMENT_THRESHOLD", "0.05"))

# Expression
EXPRESSION_BASELINE = 50
SMILE_LIFT_THRESHOLD = 0.01
SMILE_LIFT_GAIN = 1000
SMILE_MAX_BONUS = 30
FROWN_LIFT_GAIN = 500
FROWN_MAX_PENALTY = 20
WIDE_MOUTH_THRESHOLD = 0.15
WIDE_MOUTH_BONUS = 10

# Blink detection
BLINK_EAR_THRESHOLD = float(os.getenv("BLINK_EAR_THRESHOLD", "0.02"))
BLINK_RATE_WINDOW_SECONDS = float(os.getenv("BLINK_RATE_WINDOW_SECONDS", "60"))

# Confidence aggregation
EYE_CONTACT_WEIGHT = 0.40
STABILITY_WEIGHT = 0.35
EXPRESSION_WEIGHT = 0.25

CONFIDENCE_LEVELS = [
    (80, "Excellent"),
    (65, "Good"),
    (50, "Average"),
    (35, "Below Average"),
]
LOWEST_CONFIDENCE_LEVEL = "Needs Improvement"

# Blink rate bands, blinks per minute (inclusive "Normal" range)
BLINK_RATE_NORMAL_MIN = int(os.getenv("BLINK_RATE_NORMAL_MIN", "10"))
BLINK_RATE_NORMAL_MAX = int(os.getenv("BLINK_RATE_NORMAL_MAX", "25"))
LOW_BLINK_RATE_LEVEL = "Too focused"
NORMAL_BLINK_RATE_LEVEL = "Normal"
HIGH_BLINK_RATE_LEVEL = "Possibly nervous"

# Smoothing window
METRICS_WINDOW_SIZE = int(os.getenv("METRICS_WINDOW_SIZE", "30"))

# Lighting
LOW_LIGHT_THRESHOLD = float(os.getenv("LOW_LIGHT_THRESHOLD", "30"))

# Server
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
