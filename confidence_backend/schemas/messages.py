from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Landmark(BaseModel):
    x: float
    y: float
    z: float | None = None


class FrameMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    eye_contact_score: int = Field(0, ge=0, le=100)
    stability_score: int = Field(100, ge=0, le=100)
    expression_score: int = Field(50, ge=0, le=100)
    confidence_score: int = Field(50, ge=0, le=100)
    blink_count: int = Field(0, ge=0)
    blink_rate: int = Field(0, ge=0)


class SessionMetrics(FrameMetrics):
    duration: int = Field(0, ge=0)


class LightingResult(BaseModel):
    is_low_light: bool
    brightness: int


class BlinkResult(BaseModel):
    is_blink: bool
    eye_aspect_ratio: float


# --- Incoming ---

class LandmarksMessage(BaseModel):
    type: Literal["landmarks"] = "landmarks"
    landmarks: list[Landmark | None]


class ScoreRequest(BaseModel):
    landmarks: list[Landmark | None]
    previous_landmarks: list[Landmark | None] | None = None


# --- Outgoing ---

class FrameResponse(BaseModel):
    type: str = "frame_result"
    face_detected: bool
    metrics: FrameMetrics
    confidence_level: str
    blink_rate_level: str
    lighting: LightingResult | None = None


class SessionResponse(BaseModel):
    type: str = "session_metrics"
    metrics: SessionMetrics
    confidence_level: str
    blink_rate_level: str


class ResetAck(BaseModel):
    type: str = "reset_ack"
    metrics: FrameMetrics


class ErrorMessage(BaseModel):
    type: str = "error"
    message: str


class ScoreResponse(BaseModel):
    face_detected: bool
    eye_contact_score: int
    stability_score: int
    expression_score: int
    confidence_score: int
    confidence_level: str
    blink: BlinkResult


class LevelResponse(BaseModel):
    score: int
    level: str
