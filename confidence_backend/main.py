import asyncio
import json
import logging
from contextlib import asynccontextmanager

import cv2
import numpy as np
from fastapi import FastAPI, Path, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from confidence_backend.config import FRONTEND_URL, LANDMARKER_PATH
from confidence_backend.processing.geometry import has_face
from confidence_backend.processing.scoring import (
    eye_contact_score, stability_score, expression_score,
    detect_blink, confidence_score, confidence_level, blink_rate_level,
)
from confidence_backend.schemas.messages import (
    FrameMetrics, LandmarksMessage, ScoreRequest, ScoreResponse, LevelResponse,
    BlinkResult, SessionResponse, ResetAck, ErrorMessage,
)
from confidence_backend.state.detector import ConfidenceDetector, DetectorState

logger = logging.getLogger("uvicorn.error")


def create_face_mesh():
    # mediapipe is only loaded once a client streams raw video frames
    from confidence_backend.processing.face_detection import FaceMeshLandmarker
    return FaceMeshLandmarker()


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("Starting confidence service...")
    if not LANDMARKER_PATH.exists():
        print(f"Face mesh model not found at {LANDMARKER_PATH}; only landmark input will work.")
    app.state.active_sessions = set()
    print("Server ready.")
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "active_sessions": len(app.state.active_sessions)}


@app.post("/api/confidence/score")
async def score_landmarks(request: ScoreRequest) -> ScoreResponse:
    """Stateless scoring of a single landmark set."""
    face_detected = has_face(request.landmarks)
    blink = detect_blink(request.landmarks)

    if face_detected:
        eye_contact = eye_contact_score(request.landmarks)
        stability = stability_score(request.landmarks, request.previous_landmarks)
        expression = expression_score(request.landmarks)
        metrics = FrameMetrics(
            eye_contact_score=eye_contact,
            stability_score=stability,
            expression_score=expression,
            confidence_score=confidence_score(eye_contact, stability, expression),
        )
    else:
        metrics = FrameMetrics()

    return ScoreResponse(
        face_detected=face_detected,
        eye_contact_score=metrics.eye_contact_score,
        stability_score=metrics.stability_score,
        expression_score=metrics.expression_score,
        confidence_score=metrics.confidence_score,
        confidence_level=confidence_level(metrics.confidence_score),
        blink=BlinkResult(is_blink=blink.is_blink, eye_aspect_ratio=blink.eye_aspect_ratio),
    )


@app.get("/api/confidence/level/{score}")
async def get_confidence_level(score: int = Path(ge=0, le=100)) -> LevelResponse:
    return LevelResponse(score=score, level=confidence_level(score))


def _log_state(event, payload):
    if event == "state":
        logger.info(f"WS detector -> {payload.value}")


@app.websocket("/ws/confidence")
async def confidence_stream(websocket: WebSocket):
    await websocket.accept()
    detector = ConfidenceDetector(landmarker_factory=create_face_mesh)
    detector.subscribe(_log_state)
    detector.start()
    sessions = websocket.app.state.active_sessions
    sessions.add(detector)
    frame_count = 0
    # Latest JPEG bytes or landmark list; older unprocessed input is dropped
    latest_input: bytes | list | None = None

    logger.info("WS confidence session started")

    async def handle_text(text: str):
        nonlocal latest_input
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            await websocket.send_json(ErrorMessage(message="Invalid JSON").model_dump())
            return
        if not isinstance(data, dict):
            await websocket.send_json(ErrorMessage(message="Expected a JSON object").model_dump())
            return

        message_type = data.get("type")
        if message_type == "reset":
            logger.info("WS reset command received")
            if detector.state == DetectorState.ACTIVE:
                await asyncio.to_thread(detector.reset)
            else:
                await asyncio.to_thread(detector.start)
            latest_input = None
            metrics = await asyncio.to_thread(detector.smoothed_metrics)
            await websocket.send_json(ResetAck(metrics=metrics).model_dump())
        elif message_type == "session":
            snapshot = await asyncio.to_thread(detector.session_metrics)
            await websocket.send_json(SessionResponse(
                metrics=snapshot,
                confidence_level=confidence_level(snapshot.confidence_score),
                blink_rate_level=blink_rate_level(snapshot.blink_rate),
            ).model_dump())
        elif message_type == "landmarks":
            try:
                message = LandmarksMessage.model_validate(data)
            except ValidationError as e:
                await websocket.send_json(ErrorMessage(message=f"Invalid landmarks: {e.error_count()} errors").model_dump())
                return
            latest_input = message.landmarks
        else:
            await websocket.send_json(ErrorMessage(message=f"Unknown message type: {message_type}").model_dump())

    async def reader():
        """Continuously read from WebSocket, keeping only the latest frame or landmark set."""
        nonlocal latest_input
        try:
            while True:
                message = await websocket.receive()

                if message.get("type") == "websocket.disconnect":
                    break

                if message.get("text") is not None:
                    await handle_text(message["text"])

                if message.get("bytes") is not None:
                    latest_input = message["bytes"]

        except (WebSocketDisconnect, RuntimeError):
            pass

    async def processor():
        """Score the latest input, skipping stale ones."""
        nonlocal latest_input, frame_count
        try:
            while True:
                if latest_input is None:
                    await asyncio.sleep(0.01)
                    continue

                item = latest_input
                latest_input = None

                if isinstance(item, bytes):
                    frame = cv2.imdecode(np.frombuffer(item, np.uint8), cv2.IMREAD_COLOR)
                    if frame is None:
                        await websocket.send_json(ErrorMessage(message="Could not decode frame").model_dump())
                        continue
                    result = await asyncio.to_thread(detector.submit_frame, frame)
                else:
                    result = detector.submit_landmarks(item)

                if detector.state == DetectorState.ERROR:
                    await websocket.send_json(ErrorMessage(
                        message=f"Face mesh unavailable: {detector.error}. Send reset to restart"
                    ).model_dump())
                    continue

                if result is None:
                    continue

                frame_count += 1
                if frame_count <= 3 or frame_count % 30 == 0:
                    metrics = result["metrics"]
                    logger.info(
                        f"WS frame #{frame_count} -> face={result['face_detected']}, "
                        f"confidence={metrics['confidence_score']}"
                    )

                try:
                    await websocket.send_json(result)
                except (WebSocketDisconnect, RuntimeError):
                    break

        except (WebSocketDisconnect, RuntimeError):
            pass
        except asyncio.CancelledError:
            pass

    try:
        reader_task = asyncio.create_task(reader())
        processor_task = asyncio.create_task(processor())

        # When reader finishes (disconnect), cancel processor
        await reader_task
        processor_task.cancel()
        try:
            await processor_task
        except asyncio.CancelledError:
            pass

    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"WS session ended: {type(e).__name__}: {e}")
    finally:
        logger.info(f"WS cleanup: processed {frame_count} frames, stopping detector")
        sessions.discard(detector)
        await asyncio.to_thread(detector.stop, True)
